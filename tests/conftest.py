import itertools
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import crud
import models
from database import Base, make_engine
from result import Success
from schemas import CarBase


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def make_car(db):
    def _make(daily_rate="50.00", car_id=None, is_available=True, make="Toyota", model="Corolla", feed=None):
        result = crud.create_car(
            db,
            CarBase(
                make=make,
                model=model,
                year=2022,
                daily_rate=Decimal(str(daily_rate)),
                is_available=is_available,
            ),
            feed=feed,
            car_id=car_id,
        )
        assert isinstance(result, Success), result
        return result.data
    return _make


@pytest.fixture
def make_renter(db):
    counter = itertools.count(1)

    def _make(renter_id=None, email=None):
        n = next(counter)
        user = models.User(
            name=f"Renter {n}",
            email=email or f"renter{n}@mail.com",
            hashed_password="not-a-real-hash",
        )
        if renter_id is not None:
            user.id = renter_id
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def add_booking(db):
    def _add(car, renter, start, end, status=models.BookingStatus.PENDING, total_price="0.00"):
        booking = models.Booking(
            car_id=car.id,
            renter_id=renter.id,
            start_date=start,
            end_date=end,
            total_price=Decimal(total_price),
            status=status,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking
    return _add


@pytest.fixture
def today():
    return date(2024, 1, 1)
