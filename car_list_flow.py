import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy.orm import Session

import crud
import schemas
from controller import StateController
from login_flow import ShowError
from result import Loading, Success

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CarListState:
    cars: Tuple[schemas.Car, ...] = ()
    is_loading: bool = True
    error: Optional[str] = None
    only_available: bool = True


# Eventos
@dataclass(frozen=True)
class LoadCars:
    pass


@dataclass(frozen=True)
class RefreshCars:
    pass


@dataclass(frozen=True)
class AvailabilityFilterChanged:
    only_available: bool


@dataclass(frozen=True)
class CarSelected:
    car_id: int


# Efectos
@dataclass(frozen=True)
class NavigateToCarDetail:
    car_id: int


class CarListController(StateController[CarListState, object, object]):
    """
    Catálogo de vehículos. Con un ``ChangeFeed`` la lista se mantiene al día
    tras cada escritura del catálogo; sin él cada carga es una lectura puntual.
    """

    def __init__(self, db: Session, feed: Optional[crud.ChangeFeed] = None):
        self.db = db
        self.feed = feed
        self._watch_task: Optional[asyncio.Task] = None
        super().__init__()

    def create_initial_state(self) -> CarListState:
        return CarListState()

    async def handle_event(self, event):
        if isinstance(event, (LoadCars, RefreshCars)):
            await self._load()
        elif isinstance(event, AvailabilityFilterChanged):
            self.set_state(only_available=event.only_available)
            await self._load()
        elif isinstance(event, CarSelected):
            self.emit_effect(NavigateToCarDetail(event.car_id))
        else:
            raise TypeError(f"Unexpected car list event: {event!r}")

    def _apply(self, result):
        if isinstance(result, Loading):
            self.set_state(is_loading=True)
        elif isinstance(result, Success):
            cars = tuple(schemas.Car.model_validate(car) for car in result.data)
            self.set_state(cars=cars, is_loading=False, error=None)
        else:
            message = result.message or "Failed to load cars"
            self.set_state(is_loading=False, error=message)
            self.emit_effect(ShowError(message))

    async def _load(self):
        self.set_state(is_loading=True, error=None)
        only_available = self.state.only_available
        if self.feed is None:
            self._apply(crud.get_available_cars(self.db) if only_available else crud.get_cars(self.db))
            return

        if self._watch_task is not None:
            self._watch_task.cancel()
        self._watch_task = asyncio.get_running_loop().create_task(self._watch(only_available))

    async def _watch(self, only_available: bool):
        updates = crud.watch_cars(self.db, self.feed, available_only=only_available)
        try:
            async for result in updates:
                self._apply(result)
        finally:
            await updates.aclose()

    async def close(self):
        if self._watch_task is not None:
            self._watch_task.cancel()
            await asyncio.gather(self._watch_task, return_exceptions=True)
        await super().close()
