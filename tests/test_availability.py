from datetime import date

import pytest

from availability import find_available_cars, has_overlap, ranges_overlap
from models import BookingStatus
from result import Success

PAIRS = [
    ((date(2024, 3, 10), date(2024, 3, 15)), (date(2024, 3, 15), date(2024, 3, 20))),
    ((date(2024, 3, 10), date(2024, 3, 15)), (date(2024, 3, 16), date(2024, 3, 20))),
    ((date(2024, 3, 10), date(2024, 3, 20)), (date(2024, 3, 12), date(2024, 3, 13))),
    ((date(2024, 3, 12), date(2024, 3, 12)), (date(2024, 3, 12), date(2024, 3, 12))),
    ((date(2024, 3, 1), date(2024, 3, 5)), (date(2024, 3, 7), date(2024, 3, 9))),
    ((date(2024, 3, 5), date(2024, 3, 9)), (date(2024, 3, 1), date(2024, 3, 5))),
]


@pytest.mark.parametrize("a, b", PAIRS)
def test_overlap_is_symmetric(db, make_car, make_renter, add_booking, a, b):
    renter = make_renter()
    car_with_b = make_car()
    car_with_a = make_car()
    add_booking(car_with_b, renter, *b)
    add_booking(car_with_a, renter, *a)

    a_against_b = has_overlap(db, car_with_b.id, *a)
    b_against_a = has_overlap(db, car_with_a.id, *b)

    assert isinstance(a_against_b, Success)
    assert a_against_b.data == b_against_a.data == ranges_overlap(*a, *b)


def test_shared_boundary_day_conflicts():
    assert ranges_overlap(date(2024, 3, 10), date(2024, 3, 15), date(2024, 3, 15), date(2024, 3, 20))
    assert not ranges_overlap(date(2024, 3, 10), date(2024, 3, 15), date(2024, 3, 16), date(2024, 3, 20))


def test_only_pending_and_confirmed_bookings_block(db, make_car, make_renter, add_booking):
    renter = make_renter()
    car = make_car()
    add_booking(car, renter, date(2024, 4, 1), date(2024, 4, 5), status=BookingStatus.CANCELLED)
    add_booking(car, renter, date(2024, 4, 1), date(2024, 4, 5), status=BookingStatus.COMPLETED)
    assert has_overlap(db, car.id, date(2024, 4, 2), date(2024, 4, 3)) == Success(False)

    add_booking(car, renter, date(2024, 4, 4), date(2024, 4, 8), status=BookingStatus.CONFIRMED)
    assert has_overlap(db, car.id, date(2024, 4, 2), date(2024, 4, 4)) == Success(True)


def test_other_cars_do_not_block(db, make_car, make_renter, add_booking):
    renter = make_renter()
    booked, free = make_car(), make_car()
    add_booking(booked, renter, date(2024, 4, 1), date(2024, 4, 5))
    assert has_overlap(db, free.id, date(2024, 4, 1), date(2024, 4, 5)) == Success(False)


def test_find_available_cars_skips_booked_and_disabled(db, make_car, make_renter, add_booking):
    renter = make_renter()
    booked = make_car()
    disabled = make_car(is_available=False)
    free = make_car()
    cancelled = make_car()
    add_booking(booked, renter, date(2024, 4, 1), date(2024, 4, 5))
    add_booking(cancelled, renter, date(2024, 4, 1), date(2024, 4, 5), status=BookingStatus.CANCELLED)

    result = find_available_cars(db, date(2024, 4, 5), date(2024, 4, 6))

    assert [car.id for car in result.data] == [free.id, cancelled.id]
    assert disabled.id not in [car.id for car in result.data]
