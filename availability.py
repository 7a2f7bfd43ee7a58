import logging
from datetime import date

from sqlalchemy.orm import Session

import crud
from result import Success

logger = logging.getLogger(__name__)


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Dos rangos de días inclusivos se solapan si comparten al menos un día."""
    return start_a <= end_b and start_b <= end_a


def has_overlap(db: Session, car_id: int, start_date: date, end_date: date):
    """
    Success(True) si alguna reserva PENDING/CONFIRMED del vehículo toca el rango.

    Un día de borde compartido cuenta como solapamiento: una reserva que
    termina el 15 bloquea otra que empieza el 15.
    """
    result = crud.get_active_bookings_for_car(db, car_id)
    if not isinstance(result, Success):
        return result
    for booking in result.data:
        if ranges_overlap(start_date, end_date, booking.start_date, booking.end_date):
            logger.debug(f"Car {car_id} {start_date}..{end_date} overlaps booking {booking.id}")
            return Success(True)
    return Success(False)


def find_available_cars(db: Session, start_date: date, end_date: date):
    """Vehículos habilitados sin reservas activas en el rango de fechas."""
    return crud.get_cars_free_between(db, start_date, end_date)
