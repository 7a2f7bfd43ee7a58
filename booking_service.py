"""Creación de reservas: valida, comprueba disponibilidad, calcula el precio y guarda."""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

import crud
from availability import has_overlap
from pricing import calculate_total_price, rental_days, to_money
from result import Error, ErrorKind, Success
from schemas import PriceQuote

logger = logging.getLogger(__name__)


async def create_reservation(
    db: Session,
    renter_id: int,
    car_id: int,
    start_date: date,
    end_date: date,
    feed: Optional[crud.ChangeFeed] = None,
):
    """
    Crea una reserva PENDING para el vehículo en el rango [start_date, end_date].

    Devuelve ``Success(Booking)`` con el id generado, o ``Error`` con
    INVALID_RANGE, RESOURCE_NOT_FOUND, RESOURCE_UNAVAILABLE o
    PERSISTENCE_FAILURE. Sólo se escribe en el ledger si todo lo anterior pasa.
    """
    if start_date > end_date:
        return Error(ErrorKind.INVALID_RANGE, "Start date cannot be after end date")

    car_result = crud.get_car(db, car_id)
    if not isinstance(car_result, Success):
        return car_result
    car = car_result.data

    overlap = has_overlap(db, car_id, start_date, end_date)
    if not isinstance(overlap, Success):
        return overlap
    if overlap.data:
        logger.warning(f"Renter {renter_id} rejected: car {car_id} is booked within {start_date}..{end_date}")
        return Error(ErrorKind.RESOURCE_UNAVAILABLE, "Car is not available for the selected dates")

    total_price = calculate_total_price(car, start_date, end_date)

    result = crud.create_booking(db, renter_id, car_id, start_date, end_date, total_price, feed=feed)
    if isinstance(result, Success):
        logger.info(
            f"Booking {result.data.id} created: car {car_id}, renter {renter_id}, "
            f"{start_date}..{end_date}, total {total_price}"
        )
    return result


def preview_price(db: Session, car_id: int, start_date: date, end_date: date):
    """Cotización previa a la reserva; no comprueba disponibilidad."""
    if start_date > end_date:
        return Error(ErrorKind.INVALID_RANGE, "Start date cannot be after end date")
    car_result = crud.get_car(db, car_id)
    if not isinstance(car_result, Success):
        return car_result
    car = car_result.data
    return Success(PriceQuote(
        car_id=car_id,
        start_date=start_date,
        end_date=end_date,
        days=rental_days(start_date, end_date),
        daily_rate=to_money(car.daily_rate),
        total_price=calculate_total_price(car, start_date, end_date),
    ))
