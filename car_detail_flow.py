"""
Ficha de un vehículo y flujo de reserva.

El estado combina ejes independientes (vehículo cargado, fechas elegidas,
reserva en curso) en una sola instantánea. ``request_id`` identifica la
carga vigente: un resultado de una carga anterior que llegue tarde se
descarta.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.orm import Session

import crud
import schemas
from booking_service import create_reservation
from connectivity import ConnectivitySignal
from controller import StateController
from login_flow import NO_CONNECTION, ShowError
from pricing import calculate_total_price
from result import ErrorKind, Success

logger = logging.getLogger(__name__)

BOOKING_ERROR_MESSAGES = {
    ErrorKind.INVALID_RANGE: "Start date cannot be after end date",
    ErrorKind.RESOURCE_NOT_FOUND: "Car not found",
    ErrorKind.RESOURCE_UNAVAILABLE: "Car is not available for the selected dates",
    ErrorKind.PERSISTENCE_FAILURE: "Failed to book the car",
}


@dataclass(frozen=True)
class CarDetailState:
    car: Optional[schemas.Car] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    total_price: Decimal = Decimal("0.00")
    is_loading: bool = True
    booking_in_progress: bool = False
    date_error: Optional[str] = None
    request_id: int = 0
    booking_id: Optional[int] = None


# Eventos
@dataclass(frozen=True)
class LoadCar:
    car_id: int


@dataclass(frozen=True)
class StartDateSelected:
    day: date


@dataclass(frozen=True)
class EndDateSelected:
    day: date


@dataclass(frozen=True)
class BookCar:
    renter_id: int


@dataclass(frozen=True)
class BackPressed:
    pass


# Efectos
@dataclass(frozen=True)
class NavigateBack:
    pass


@dataclass(frozen=True)
class BookingSuccess:
    booking_id: int


def validate_dates(start_date: Optional[date], end_date: Optional[date], today: date) -> Optional[str]:
    if start_date is None or end_date is None:
        return None
    if start_date > end_date:
        return "Start date cannot be after end date"
    if start_date < today:
        return "Start date cannot be in the past"
    return None


def _with_dates(state: CarDetailState, today: date, **dates) -> CarDetailState:
    state = replace(state, **dates)
    total_price = Decimal("0.00")
    date_error = validate_dates(state.start_date, state.end_date, today)
    if state.car is not None and state.start_date and state.end_date and state.start_date <= state.end_date:
        total_price = calculate_total_price(state.car, state.start_date, state.end_date)
    return replace(state, total_price=total_price, date_error=date_error)


class CarDetailController(StateController[CarDetailState, object, object]):

    def __init__(
        self,
        db: Session,
        connectivity: Optional[ConnectivitySignal] = None,
        feed: Optional[crud.ChangeFeed] = None,
        today: Callable[[], date] = date.today,
    ):
        self.db = db
        self.connectivity = connectivity or ConnectivitySignal()
        self.feed = feed
        self.today = today
        super().__init__()

    def create_initial_state(self) -> CarDetailState:
        return CarDetailState()

    async def handle_event(self, event):
        if isinstance(event, LoadCar):
            await self._load_car(event.car_id)
        elif isinstance(event, StartDateSelected):
            self.update_state(lambda s: _with_dates(s, self.today(), start_date=event.day))
        elif isinstance(event, EndDateSelected):
            self.update_state(lambda s: _with_dates(s, self.today(), end_date=event.day))
        elif isinstance(event, BookCar):
            await self._book(event.renter_id)
        elif isinstance(event, BackPressed):
            self.emit_effect(NavigateBack())
        else:
            raise TypeError(f"Unexpected car detail event: {event!r}")

    async def _load_car(self, car_id: int):
        request_id = self.update_state(
            lambda s: replace(s, is_loading=True, request_id=s.request_id + 1)
        ).request_id

        result = crud.get_car(self.db, car_id)

        if self.state.request_id != request_id:
            logger.debug(f"Dropping stale load of car {car_id}")
            return
        if isinstance(result, Success):
            car = schemas.Car.model_validate(result.data)
            self.update_state(lambda s: _with_dates(replace(s, car=car, is_loading=False), self.today()))
        else:
            self.set_state(is_loading=False)
            self.emit_effect(ShowError(result.message or "Failed to load car details"))
            self.emit_effect(NavigateBack())

    async def _book(self, renter_id: int):
        state = self.state
        if state.booking_in_progress:
            return
        if state.car is None or state.start_date is None or state.end_date is None:
            self.emit_effect(ShowError("Please select both start and end dates"))
            return

        date_error = validate_dates(state.start_date, state.end_date, self.today())
        if date_error is not None:
            self.set_state(date_error=date_error)
            self.emit_effect(ShowError(date_error))
            return
        if not self.connectivity.is_connected():
            self.emit_effect(ShowError(NO_CONNECTION))
            return

        self.set_state(booking_in_progress=True)
        result = await create_reservation(
            self.db, renter_id, state.car.id, state.start_date, state.end_date, feed=self.feed
        )
        if isinstance(result, Success):
            self.set_state(booking_in_progress=False, booking_id=result.data.id)
            self.emit_effect(BookingSuccess(result.data.id))
        else:
            self.set_state(booking_in_progress=False)
            message = BOOKING_ERROR_MESSAGES.get(result.kind) or result.message or "Failed to book the car"
            self.emit_effect(ShowError(message))
