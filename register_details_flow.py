import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

import crud
import schemas
from controller import StateController
from login_flow import NavigateToHome, ShowError
from models import Gender
from result import Success
from validators import check_birth_date, check_required, parse_birth_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisterDetailsState:
    last_name: str = ""
    first_name: str = ""
    # Opcional
    middle_name: str = ""
    birth_date: str = ""
    gender: Optional[Gender] = None
    is_loading: bool = False
    user_id: Optional[int] = None
    last_name_error: Optional[str] = None
    first_name_error: Optional[str] = None
    birth_date_error: Optional[str] = None
    gender_error: Optional[str] = None


# Eventos
@dataclass(frozen=True)
class SetUserId:
    user_id: int


@dataclass(frozen=True)
class LastNameChanged:
    last_name: str


@dataclass(frozen=True)
class FirstNameChanged:
    first_name: str


@dataclass(frozen=True)
class MiddleNameChanged:
    middle_name: str


@dataclass(frozen=True)
class BirthDateChanged:
    birth_date: str


@dataclass(frozen=True)
class GenderChanged:
    gender: Gender


@dataclass(frozen=True)
class NextClicked:
    pass


@dataclass(frozen=True)
class BackClicked:
    pass


# Efectos
@dataclass(frozen=True)
class NavigateBack:
    pass


@dataclass(frozen=True)
class ShowSuccess:
    message: str


class RegisterDetailsController(StateController[RegisterDetailsState, object, object]):
    """Segundo paso del registro: datos personales del usuario ya creado."""

    def __init__(self, db: Session):
        self.db = db
        super().__init__()

    def create_initial_state(self) -> RegisterDetailsState:
        return RegisterDetailsState()

    async def handle_event(self, event):
        if isinstance(event, SetUserId):
            self.set_state(user_id=event.user_id)
        elif isinstance(event, LastNameChanged):
            self.set_state(last_name=event.last_name, last_name_error=None)
        elif isinstance(event, FirstNameChanged):
            self.set_state(first_name=event.first_name, first_name_error=None)
        elif isinstance(event, MiddleNameChanged):
            self.set_state(middle_name=event.middle_name)
        elif isinstance(event, BirthDateChanged):
            self.set_state(birth_date=event.birth_date, birth_date_error=None)
        elif isinstance(event, GenderChanged):
            self.set_state(gender=event.gender, gender_error=None)
        elif isinstance(event, NextClicked):
            await self._save()
        elif isinstance(event, BackClicked):
            self.emit_effect(NavigateBack())
        else:
            raise TypeError(f"Unexpected register details event: {event!r}")

    def _validate(self, state: RegisterDetailsState) -> bool:
        errors = [
            check_required("last_name", state.last_name, "Last name is required"),
            check_required("first_name", state.first_name, "First name is required"),
            check_birth_date(state.birth_date),
        ]
        by_field = {error.field: error.message for error in errors if error is not None}
        if state.gender is None:
            by_field["gender"] = "Please select a gender"
        self.set_state(
            last_name_error=by_field.get("last_name"),
            first_name_error=by_field.get("first_name"),
            birth_date_error=by_field.get("birth_date"),
            gender_error=by_field.get("gender"),
        )
        if by_field:
            self.emit_effect(ShowError("Please fill in all required fields"))
        return not by_field

    async def _save(self):
        state = self.state
        if state.is_loading or not self._validate(state):
            return
        if state.user_id is None:
            self.emit_effect(ShowError("User id is missing"))
            return

        self.set_state(is_loading=True)
        profile = schemas.ProfileUpdate(
            first_name=state.first_name.strip(),
            last_name=state.last_name.strip(),
            middle_name=state.middle_name.strip(),
            birth_date=parse_birth_date(state.birth_date),
            gender=state.gender,
        )
        result = crud.update_user_profile(self.db, state.user_id, profile)
        self.set_state(is_loading=False)
        if isinstance(result, Success):
            self.emit_effect(ShowSuccess("Personal details saved"))
            self.emit_effect(NavigateToHome(schemas.User.model_validate(result.data)))
        else:
            logger.warning(f"Personal details for user {state.user_id} not saved: {result.kind.value}")
            self.emit_effect(ShowError(result.message or "Failed to save personal details"))
