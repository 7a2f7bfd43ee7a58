from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

import crud
import schemas
from controller import StateController
from login_flow import ShowError
from result import Success


@dataclass(frozen=True)
class ProfileState:
    user: Optional[schemas.User] = None
    is_loading: bool = False
    error: Optional[str] = None


# Eventos
@dataclass(frozen=True)
class LoadUserData:
    user_id: int


class ProfileController(StateController[ProfileState, object, object]):

    def __init__(self, db: Session):
        self.db = db
        super().__init__()

    def create_initial_state(self) -> ProfileState:
        return ProfileState()

    async def handle_event(self, event):
        if isinstance(event, LoadUserData):
            await self._load(event.user_id)
        else:
            raise TypeError(f"Unexpected profile event: {event!r}")

    async def _load(self, user_id: int):
        self.set_state(is_loading=True, error=None)
        result = crud.get_user(self.db, user_id)
        if isinstance(result, Success):
            self.set_state(user=schemas.User.model_validate(result.data), is_loading=False)
        else:
            message = result.message or "Failed to load user data"
            self.set_state(is_loading=False, error=message)
            self.emit_effect(ShowError(message))
