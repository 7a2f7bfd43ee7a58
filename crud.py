import functools
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from auth import get_password_hash, verify_password
from controller import StateFlow, Subscription
from models import ACTIVE_STATUSES, Booking, BookingStatus, Car, UnknownStatus, User
from result import LOADING, Error, ErrorKind, Success
from schemas import CarBase, CarUpdate, ProfileUpdate, UserCreate

logger = logging.getLogger(__name__)

CARS = "cars"
BOOKINGS = "bookings"


class ChangeFeed:
    """Número de versión por tabla; cada escritura lo incrementa."""

    def __init__(self):
        self._versions: Dict[str, StateFlow[int]] = {}

    def _flow(self, topic: str) -> StateFlow[int]:
        if topic not in self._versions:
            self._versions[topic] = StateFlow(0)
        return self._versions[topic]

    def publish(self, topic: str):
        self._flow(topic).update(lambda version: version + 1)

    def subscribe(self, topic: str) -> Subscription[int]:
        return self._flow(topic).subscribe()


def _publish(feed: Optional[ChangeFeed], topic: str):
    if feed is not None:
        feed.publish(topic)


def guarded(func):
    """Convierte los errores del almacenamiento en resultados tipados."""
    @functools.wraps(func)
    def wrapper(db: Session, *args, **kwargs):
        try:
            return func(db, *args, **kwargs)
        except UnknownStatus as e:
            db.rollback()
            logger.error(f"{func.__name__}: {e}")
            return Error(ErrorKind.UNKNOWN_STATUS, str(e))
        except SQLAlchemyError as e:
            db.rollback()
            if isinstance(getattr(e, "orig", None), UnknownStatus):
                logger.error(f"{func.__name__}: {e.orig}")
                return Error(ErrorKind.UNKNOWN_STATUS, str(e.orig))
            logger.error(f"{func.__name__} failed: {e}")
            return Error(ErrorKind.PERSISTENCE_FAILURE, str(e))
    return wrapper


# Operaciones de usuario
@guarded
def create_user(db: Session, user: UserCreate):
    db_user = User(
        name=user.name,
        email=user.email,
        phone_number=user.phone_number,
        hashed_password=get_password_hash(user.password),
        role="Customer"
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return Error(ErrorKind.ALREADY_EXISTS, "User with this email already exists", "email")
    db.refresh(db_user)
    logger.info(f"User {db_user.id} registered")
    return Success(db_user)

@guarded
def get_user(db: Session, user_id: int):
    db_user = db.query(User).filter(User.id == user_id).first()
    if db_user is None:
        return Error(ErrorKind.NOT_FOUND, "User not found")
    return Success(db_user)

@guarded
def get_user_by_email(db: Session, email: str):
    db_user = db.query(User).filter(User.email == email).first()
    if db_user is None:
        return Error(ErrorKind.NOT_FOUND, "User not found")
    return Success(db_user)

@guarded
def update_user_profile(db: Session, user_id: int, profile: ProfileUpdate):
    db_user = db.query(User).filter(User.id == user_id).first()
    if db_user is None:
        return Error(ErrorKind.NOT_FOUND, "User not found")
    db_user.first_name = profile.first_name
    db_user.last_name = profile.last_name
    db_user.middle_name = profile.middle_name
    db_user.birth_date = profile.birth_date
    db_user.gender = profile.gender.value
    db.commit()
    db.refresh(db_user)
    logger.info(f"User {user_id} completed personal details")
    return Success(db_user)

def authenticate_user(db: Session, email: str, password: str):
    result = get_user_by_email(db, email)
    if isinstance(result, Error) and result.kind != ErrorKind.NOT_FOUND:
        return result
    if isinstance(result, Error) or not verify_password(password, result.data.hashed_password):
        return Error(ErrorKind.INVALID_CREDENTIALS, "Invalid credentials")
    return result

# Operaciones de vehículos
@guarded
def create_car(db: Session, car: CarBase, feed: Optional[ChangeFeed] = None, car_id: Optional[int] = None):
    db_car = Car(**car.model_dump())
    if car_id is not None:
        db_car.id = car_id
    db.add(db_car)
    db.commit()
    db.refresh(db_car)
    logger.info(f"Car {db_car.id} created: {db_car.make} {db_car.model}")
    _publish(feed, CARS)
    return Success(db_car)

@guarded
def get_car(db: Session, car_id: int):
    db_car = db.query(Car).filter(Car.id == car_id).first()
    if db_car is None:
        return Error(ErrorKind.RESOURCE_NOT_FOUND, "Car not found")
    return Success(db_car)

@guarded
def get_cars(db: Session, skip: int = 0, limit: int = 100):
    return Success(db.query(Car).order_by(Car.id).offset(skip).limit(limit).all())

@guarded
def get_available_cars(db: Session):
    return Success(db.query(Car).filter(Car.is_available.is_(True)).order_by(Car.id).all())

@guarded
def count_cars(db: Session):
    return Success(db.query(Car).count())

@guarded
def get_cars_free_between(db: Session, start_date: date, end_date: date):
    # Vehículos que no tienen reservas activas en el rango de fechas
    subquery = db.query(Booking.car_id).filter(
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.start_date <= end_date,
        Booking.end_date >= start_date
    )
    return Success(
        db.query(Car)
        .filter(Car.is_available.is_(True), ~Car.id.in_(subquery))
        .order_by(Car.id)
        .all()
    )

@guarded
def update_car(db: Session, car_id: int, car: CarUpdate, feed: Optional[ChangeFeed] = None):
    db_car = db.query(Car).filter(Car.id == car_id).first()
    if db_car is None:
        return Error(ErrorKind.RESOURCE_NOT_FOUND, "Car not found")
    for field, value in car.model_dump(exclude_unset=True).items():
        setattr(db_car, field, value)
    db.commit()
    db.refresh(db_car)
    _publish(feed, CARS)
    return Success(db_car)

def set_car_availability(db: Session, car_id: int, is_available: bool, feed: Optional[ChangeFeed] = None):
    return update_car(db, car_id, CarUpdate(is_available=is_available), feed=feed)

@guarded
def delete_car(db: Session, car_id: int, feed: Optional[ChangeFeed] = None):
    db_car = db.query(Car).filter(Car.id == car_id).first()
    if db_car is None:
        return Error(ErrorKind.RESOURCE_NOT_FOUND, "Car not found")
    db.delete(db_car)
    db.commit()
    logger.info(f"Car {car_id} deleted")
    _publish(feed, CARS)
    _publish(feed, BOOKINGS)
    return Success(None)

SAMPLE_CARS = [
    CarBase(make="Toyota", model="Camry", year=2023, daily_rate=Decimal("65.00"),
            description="Comfortable family sedan with low fuel consumption"),
    CarBase(make="Honda", model="Civic", year=2022, daily_rate=Decimal("55.00"),
            description="Compact car with great handling and economy"),
    CarBase(make="BMW", model="X5", year=2022, daily_rate=Decimal("120.00"),
            description="Luxury sport utility vehicle with advanced technology"),
    CarBase(make="Mercedes-Benz", model="E-Class", year=2023, daily_rate=Decimal("110.00"),
            description="Elegant business sedan with a smooth ride"),
    CarBase(make="Audi", model="Q7", year=2022, daily_rate=Decimal("115.00"),
            description="Spacious premium SUV"),
    CarBase(make="Volkswagen", model="Golf", year=2023, daily_rate=Decimal("50.00"),
            description="Practical and economical hatchback"),
    CarBase(make="Tesla", model="Model 3", year=2023, daily_rate=Decimal("95.00"),
            description="All-electric sport sedan with impressive range"),
]

@guarded
def seed_cars(db: Session, cars=None, feed: Optional[ChangeFeed] = None):
    """Carga la flota de ejemplo sólo si la tabla de vehículos está vacía."""
    if db.query(Car).count() > 0:
        return Success(0)
    cars = SAMPLE_CARS if cars is None else cars
    db.add_all([Car(**car.model_dump()) for car in cars])
    db.commit()
    logger.info(f"Seeded {len(cars)} sample cars")
    _publish(feed, CARS)
    return Success(len(cars))

async def watch_cars(db: Session, feed: ChangeFeed, available_only: bool = False):
    """
    Lista de vehículos actual y luego una lista nueva tras cada escritura del
    catálogo. Antes de cada lectura se emite ``LOADING``.
    """
    with feed.subscribe(CARS) as changes:
        async for _ in changes:
            yield LOADING
            db.expire_all()
            yield get_available_cars(db) if available_only else get_cars(db)

# Operaciones de reservas
@guarded
def get_booking(db: Session, booking_id: int):
    db_booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if db_booking is None:
        return Error(ErrorKind.NOT_FOUND, "Booking not found")
    return Success(db_booking)

@guarded
def get_bookings(db: Session, skip: int = 0, limit: int = 100):
    return Success(db.query(Booking).order_by(Booking.id).offset(skip).limit(limit).all())

@guarded
def get_bookings_by_renter(db: Session, renter_id: int):
    return Success(
        db.query(Booking).filter(Booking.renter_id == renter_id).order_by(Booking.start_date, Booking.id).all()
    )

@guarded
def get_bookings_by_car(db: Session, car_id: int):
    return Success(
        db.query(Booking).filter(Booking.car_id == car_id).order_by(Booking.start_date, Booking.id).all()
    )

@guarded
def get_active_bookings_for_car(db: Session, car_id: int):
    return Success(
        db.query(Booking)
        .filter(Booking.car_id == car_id, Booking.status.in_(ACTIVE_STATUSES))
        .order_by(Booking.start_date)
        .all()
    )

def _overlapping_query(db: Session, car_id: int, start_date: date, end_date: date):
    return db.query(Booking).filter(
        Booking.car_id == car_id,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.start_date <= end_date,
        Booking.end_date >= start_date
    )

@guarded
def get_overlapping_bookings(db: Session, car_id: int, start_date: date, end_date: date):
    return Success(_overlapping_query(db, car_id, start_date, end_date).all())

@guarded
def create_booking(
    db: Session,
    renter_id: int,
    car_id: int,
    start_date: date,
    end_date: date,
    total_price: Decimal,
    feed: Optional[ChangeFeed] = None,
):
    """
    Inserta una reserva PENDING sólo si el vehículo sigue libre.

    La fila del vehículo se bloquea (SELECT ... FOR UPDATE) y el
    solapamiento se vuelve a consultar dentro de la misma transacción, así
    dos reservas concurrentes no pueden quedar ambas guardadas.
    """
    locked_car = db.query(Car).filter(Car.id == car_id).with_for_update().first()
    if locked_car is None:
        db.rollback()
        return Error(ErrorKind.RESOURCE_NOT_FOUND, "Car not found")
    if _overlapping_query(db, car_id, start_date, end_date).first() is not None:
        db.rollback()
        logger.warning(f"Car {car_id} was booked for {start_date}..{end_date} by a concurrent request")
        return Error(ErrorKind.RESOURCE_UNAVAILABLE, "Car is not available for the selected dates")

    db_booking = Booking(
        renter_id=renter_id,
        car_id=car_id,
        start_date=start_date,
        end_date=end_date,
        total_price=total_price,
        status=BookingStatus.PENDING
    )
    db.add(db_booking)
    db.commit()
    db.refresh(db_booking)
    _publish(feed, BOOKINGS)
    return Success(db_booking)

@guarded
def update_booking_status(db: Session, booking_id: int, status: BookingStatus, feed: Optional[ChangeFeed] = None):
    """
    Cambia el estado de una reserva. Si una reserva cancelada o completada
    vuelve a estar activa, el vehículo se bloquea y se comprueba que las
    fechas sigan libres, igual que en ``create_booking``.
    """
    db_booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if db_booking is None:
        return Error(ErrorKind.NOT_FOUND, "Booking not found")
    new_status = BookingStatus.parse(status)
    if new_status in ACTIVE_STATUSES and db_booking.status not in ACTIVE_STATUSES:
        db.query(Car).filter(Car.id == db_booking.car_id).with_for_update().first()
        clash = (
            _overlapping_query(db, db_booking.car_id, db_booking.start_date, db_booking.end_date)
            .filter(Booking.id != booking_id)
            .first()
        )
        if clash is not None:
            logger.warning(f"Booking {booking_id} cannot become {new_status.value}: overlaps booking {clash.id}")
            db.rollback()
            return Error(ErrorKind.RESOURCE_UNAVAILABLE, "Car is not available for the selected dates")
    db_booking.status = new_status
    db.commit()
    db.refresh(db_booking)
    logger.info(f"Booking {booking_id} is now {db_booking.status.value}")
    _publish(feed, BOOKINGS)
    return Success(db_booking)

@guarded
def delete_booking(db: Session, booking_id: int, feed: Optional[ChangeFeed] = None):
    db_booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if db_booking is None:
        return Error(ErrorKind.NOT_FOUND, "Booking not found")
    db.delete(db_booking)
    db.commit()
    _publish(feed, BOOKINGS)
    return Success(None)
