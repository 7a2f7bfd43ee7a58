import enum

from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, ForeignKey, Integer, Numeric, String, Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from database import Base


class UnknownStatus(ValueError):
    """Valor de estado guardado que no corresponde a ningún BookingStatus."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Unknown booking status: {value!r}")


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

    @classmethod
    def parse(cls, value):
        """Convierte el texto almacenado en un estado; falla con UnknownStatus."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownStatus(value) from None


class Gender(str, enum.Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


# Estados que bloquean el vehículo en un rango de fechas
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class StatusType(TypeDecorator):
    """Guarda BookingStatus como texto y lo vuelve a leer con BookingStatus.parse."""

    impl = String(20)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return BookingStatus.parse(value).value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return BookingStatus.parse(value)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    phone_number = Column(String(20), default="")
    hashed_password = Column(String(200), nullable=False)
    role = Column(String(20), default="Customer")
    # Datos personales, se completan después del registro
    first_name = Column(String(50), default="")
    last_name = Column(String(50), default="")
    middle_name = Column(String(50), default="")
    birth_date = Column(Date, nullable=True)
    gender = Column(String(10), nullable=True)

    bookings = relationship("Booking", back_populates="renter", cascade="all, delete-orphan")


class Car(Base):
    __tablename__ = "cars"

    id = Column(Integer, primary_key=True, index=True)
    make = Column(String(50), nullable=False)
    model = Column(String(50), nullable=False)
    year = Column(Integer, nullable=False)
    daily_rate = Column(Numeric(10, 2), nullable=False)
    description = Column(Text, default="")
    media_ref = Column(String(500), default="")
    is_available = Column(Boolean, default=True, nullable=False)

    bookings = relationship("Booking", back_populates="car", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("daily_rate > 0", name="check_car_daily_rate_positive"),
    )


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    renter_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    car_id = Column(Integer, ForeignKey("cars.id", ondelete="CASCADE"), index=True, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    status = Column(StatusType(), default=BookingStatus.PENDING, nullable=False)

    car = relationship("Car", back_populates="bookings")
    renter = relationship("User", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="check_booking_date_range"),
    )

    def __repr__(self):
        return (
            f"<Booking(id={self.id}, car={self.car_id}, renter={self.renter_id}, "
            f"{self.start_date}..{self.end_date}, status={self.status})>"
        )
