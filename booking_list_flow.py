import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from sqlalchemy.orm import Session

import crud
import schemas
from controller import StateController
from login_flow import ShowError
from result import Success

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingWithCar:
    booking: schemas.Booking
    # None mientras se carga o si no se pudo cargar
    car: Optional[schemas.Car] = None


@dataclass(frozen=True)
class BookingListState:
    bookings: Tuple[BookingWithCar, ...] = ()
    is_loading: bool = True
    error: Optional[str] = None
    renter_id: Optional[int] = None


# Eventos
@dataclass(frozen=True)
class LoadBookings:
    renter_id: int


@dataclass(frozen=True)
class RefreshBookings:
    pass


@dataclass(frozen=True)
class BookingSelected:
    booking_id: int


# Efectos
@dataclass(frozen=True)
class NavigateToBookingDetail:
    booking_id: int


def _attach_car(state: BookingListState, booking_id: int, car: schemas.Car) -> BookingListState:
    bookings = tuple(
        replace(item, car=car) if item.booking.id == booking_id else item
        for item in state.bookings
    )
    return replace(state, bookings=bookings)


class BookingListController(StateController[BookingListState, object, object]):
    """Reservas de un usuario; los datos de cada vehículo llegan por separado."""

    def __init__(self, db: Session):
        self.db = db
        super().__init__()

    def create_initial_state(self) -> BookingListState:
        return BookingListState()

    async def handle_event(self, event):
        if isinstance(event, LoadBookings):
            self.set_state(renter_id=event.renter_id)
            await self._load(event.renter_id)
        elif isinstance(event, RefreshBookings):
            if self.state.renter_id is not None:
                await self._load(self.state.renter_id)
        elif isinstance(event, BookingSelected):
            self.emit_effect(NavigateToBookingDetail(event.booking_id))
        else:
            raise TypeError(f"Unexpected booking list event: {event!r}")

    async def _load(self, renter_id: int):
        self.set_state(is_loading=True, error=None)
        result = crud.get_bookings_by_renter(self.db, renter_id)
        if not isinstance(result, Success):
            message = result.message or "Failed to load bookings"
            self.set_state(is_loading=False, error=message)
            self.emit_effect(ShowError(message))
            return

        bookings = tuple(BookingWithCar(schemas.Booking.model_validate(b)) for b in result.data)
        self.set_state(bookings=bookings, is_loading=False, error=None)
        for item in bookings:
            self.launch(self._load_car(item.booking.id, item.booking.car_id))

    async def _load_car(self, booking_id: int, car_id: int):
        result = crud.get_car(self.db, car_id)
        if isinstance(result, Success):
            car = schemas.Car.model_validate(result.data)
            self.update_state(lambda s: _attach_car(s, booking_id, car))
        else:
            logger.debug(f"Car {car_id} for booking {booking_id} not loaded: {result.kind.value}")
