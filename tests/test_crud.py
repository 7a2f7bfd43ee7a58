import asyncio
from datetime import date
from decimal import Decimal

from sqlalchemy import text

import crud
from models import BookingStatus, UnknownStatus
from result import LOADING, Error, ErrorKind, Success
from schemas import CarBase, CarUpdate, UserCreate

import pytest


def test_get_missing_car(db):
    assert crud.get_car(db, 1) == Error(ErrorKind.RESOURCE_NOT_FOUND, "Car not found")


def test_reads_are_idempotent(db, make_car):
    make_car(make="Honda", model="Civic")
    make_car(make="BMW", model="X5")

    first_list, second_list = crud.get_cars(db), crud.get_cars(db)
    first_car, second_car = crud.get_car(db, 1), crud.get_car(db, 1)

    assert [c.id for c in first_list.data] == [c.id for c in second_list.data] == [1, 2]
    assert first_car.data is second_car.data
    assert first_car.data.make == "Honda"


def test_available_cars_follow_the_flag(db, make_car):
    car = make_car()
    make_car(is_available=False)

    assert [c.id for c in crud.get_available_cars(db).data] == [car.id]

    crud.set_car_availability(db, car.id, False)
    assert crud.get_available_cars(db).data == []


def test_update_car_changes_rate_only(db, make_car):
    car = make_car(daily_rate="50.00")

    updated = crud.update_car(db, car.id, CarUpdate(daily_rate=Decimal("55.50")))

    assert updated.data.daily_rate == Decimal("55.50")
    assert updated.data.make == "Toyota"
    assert crud.update_car(db, 999, CarUpdate(is_available=False)).kind == ErrorKind.RESOURCE_NOT_FOUND


def test_delete_car_removes_its_bookings(db, make_car, make_renter, add_booking):
    car = make_car()
    booking = add_booking(car, make_renter(), date(2024, 1, 1), date(2024, 1, 2))

    assert crud.delete_car(db, car.id) == Success(None)
    assert crud.get_car(db, car.id).kind == ErrorKind.RESOURCE_NOT_FOUND
    db.expire_all()
    assert crud.get_booking(db, booking.id).kind == ErrorKind.NOT_FOUND


def test_seed_only_fills_an_empty_catalog(db):
    assert crud.seed_cars(db) == Success(len(crud.SAMPLE_CARS))
    assert crud.seed_cars(db) == Success(0)
    assert crud.count_cars(db) == Success(7)


def test_bookings_by_renter_and_car(db, make_car, make_renter, add_booking):
    alice, bob = make_renter(), make_renter()
    car = make_car()
    later = add_booking(car, alice, date(2024, 2, 10), date(2024, 2, 12))
    earlier = add_booking(car, alice, date(2024, 2, 1), date(2024, 2, 3))
    add_booking(car, bob, date(2024, 2, 5), date(2024, 2, 6))

    assert [b.id for b in crud.get_bookings_by_renter(db, alice.id).data] == [earlier.id, later.id]
    assert len(crud.get_bookings_by_car(db, car.id).data) == 3
    assert len(crud.get_overlapping_bookings(db, car.id, date(2024, 2, 3), date(2024, 2, 5)).data) == 2


def test_unknown_stored_status_surfaces_as_typed_error(db, make_car, make_renter):
    car = make_car()
    renter = make_renter()
    db.execute(
        text(
            "INSERT INTO bookings (id, renter_id, car_id, start_date, end_date, total_price, status) "
            "VALUES (77, :renter, :car, '2024-01-01', '2024-01-02', 10, 'ARCHIVED')"
        ),
        {"renter": renter.id, "car": car.id},
    )
    db.commit()

    result = crud.get_booking(db, 77)

    assert result.kind == ErrorKind.UNKNOWN_STATUS
    assert "ARCHIVED" in result.message


def test_status_parse():
    assert BookingStatus.parse("CONFIRMED") is BookingStatus.CONFIRMED
    with pytest.raises(UnknownStatus):
        BookingStatus.parse("confirmed ")


def test_update_booking_status_rejects_unknown_values(db, make_car, make_renter, add_booking):
    booking = add_booking(make_car(), make_renter(), date(2024, 1, 1), date(2024, 1, 2))

    assert crud.update_booking_status(db, booking.id, "LOST").kind == ErrorKind.UNKNOWN_STATUS
    assert crud.update_booking_status(db, booking.id, "CONFIRMED").data.status == BookingStatus.CONFIRMED


def test_duplicate_email_is_reported(db):
    user = UserCreate(name="Ana", email="ana@mail.com", password="secret1")
    created = crud.create_user(db, user)

    assert isinstance(created, Success)
    assert created.data.hashed_password != "secret1"
    assert crud.create_user(db, user).kind == ErrorKind.ALREADY_EXISTS


def test_authenticate_user(db):
    crud.create_user(db, UserCreate(name="Ana", email="ana@mail.com", password="secret1"))

    assert isinstance(crud.authenticate_user(db, "ana@mail.com", "secret1"), Success)
    assert crud.authenticate_user(db, "ana@mail.com", "wrong!").kind == ErrorKind.INVALID_CREDENTIALS
    assert crud.authenticate_user(db, "nobody@mail.com", "secret1").kind == ErrorKind.INVALID_CREDENTIALS


def test_watch_cars_is_a_live_view(db, make_car):
    make_car()
    feed = crud.ChangeFeed()

    async def scenario():
        updates = crud.watch_cars(db, feed)
        try:
            loading = await asyncio.wait_for(updates.__anext__(), 1)
            first = await asyncio.wait_for(updates.__anext__(), 1)
            crud.create_car(
                db,
                CarBase(make="Tesla", model="Model 3", year=2023, daily_rate=Decimal("95.00")),
                feed=feed,
            )
            reloading = await asyncio.wait_for(updates.__anext__(), 1)
            second = await asyncio.wait_for(updates.__anext__(), 1)
        finally:
            await updates.aclose()
        return loading, first, reloading, second

    loading, first, reloading, second = asyncio.run(scenario())

    assert loading is LOADING and reloading is LOADING
    assert len(first.data) == 1
    assert [c.make for c in second.data] == ["Toyota", "Tesla"]
