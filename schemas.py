from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from datetime import date
from decimal import Decimal
from typing import Optional

from models import BookingStatus, Gender

class UserBase(BaseModel):
    name: str
    email: EmailStr
    phone_number: str = ""

class UserCreate(UserBase):
    password: str

class User(UserBase):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    role: str
    first_name: str = ""
    last_name: str = ""
    middle_name: str = ""
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None

class ProfileUpdate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    middle_name: str = Field("", max_length=50)
    birth_date: date
    gender: Gender

class Token(BaseModel):
    access_token: str
    token_type: str

class TokenData(BaseModel):
    email: Optional[str] = None

class CarBase(BaseModel):
    make: str
    model: str
    year: int = Field(..., ge=1900, le=2100)
    daily_rate: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    description: str = ""
    media_ref: str = ""
    is_available: bool = True

class CarUpdate(BaseModel):
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = Field(None, ge=1900, le=2100)
    daily_rate: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    media_ref: Optional[str] = None
    is_available: Optional[bool] = None

    # Omitir un campo lo deja igual; enviarlo como null no está permitido
    @field_validator("make", "model", "year", "daily_rate", "description", "media_ref", "is_available", mode="before")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

class Car(CarBase):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int

class BookingBase(BaseModel):
    car_id: int
    start_date: date
    end_date: date

class Booking(BookingBase):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    renter_id: int
    total_price: Decimal
    status: BookingStatus

class BookingStatusUpdate(BaseModel):
    status: BookingStatus

class PriceQuote(BaseModel):
    car_id: int
    start_date: date
    end_date: date
    days: int
    daily_rate: Decimal
    total_price: Decimal
