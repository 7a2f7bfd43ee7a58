import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

import crud
from connectivity import ConnectivitySignal
from controller import StateController
from login_flow import NO_CONNECTION, RetryConnection, ShowError
from result import Error, ErrorKind, Success
from schemas import UserCreate
from validators import check_confirm_password, check_email, check_name, check_password, check_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisterState:
    name: str = ""
    email: str = ""
    phone_number: str = ""
    password: str = ""
    confirm_password: str = ""
    is_loading: bool = False
    name_error: Optional[str] = None
    email_error: Optional[str] = None
    phone_error: Optional[str] = None
    password_error: Optional[str] = None
    confirm_password_error: Optional[str] = None


# Eventos
@dataclass(frozen=True)
class NameChanged:
    name: str


@dataclass(frozen=True)
class EmailChanged:
    email: str


@dataclass(frozen=True)
class PhoneChanged:
    phone_number: str


@dataclass(frozen=True)
class PasswordChanged:
    password: str


@dataclass(frozen=True)
class ConfirmPasswordChanged:
    confirm_password: str


@dataclass(frozen=True)
class RegisterClicked:
    pass


@dataclass(frozen=True)
class LoginClicked:
    pass


# Efectos
@dataclass(frozen=True)
class NavigateToLogin:
    pass


@dataclass(frozen=True)
class NavigateToProfileDetails:
    user_id: int


class RegisterController(StateController[RegisterState, object, object]):

    def __init__(self, db: Session, connectivity: Optional[ConnectivitySignal] = None):
        self.db = db
        self.connectivity = connectivity or ConnectivitySignal()
        super().__init__()

    def create_initial_state(self) -> RegisterState:
        return RegisterState()

    async def handle_event(self, event):
        if isinstance(event, NameChanged):
            self.set_state(name=event.name, name_error=None)
        elif isinstance(event, EmailChanged):
            self.set_state(email=event.email, email_error=None)
        elif isinstance(event, PhoneChanged):
            self.set_state(phone_number=event.phone_number, phone_error=None)
        elif isinstance(event, PasswordChanged):
            self.set_state(password=event.password, password_error=None)
        elif isinstance(event, ConfirmPasswordChanged):
            self.set_state(confirm_password=event.confirm_password, confirm_password_error=None)
        elif isinstance(event, RegisterClicked):
            await self._register()
        elif isinstance(event, LoginClicked):
            self.emit_effect(NavigateToLogin())
        elif isinstance(event, RetryConnection):
            if not self.connectivity.is_connected():
                self.emit_effect(ShowError(NO_CONNECTION))
        else:
            raise TypeError(f"Unexpected register event: {event!r}")

    def _validate(self, state: RegisterState) -> bool:
        errors = [
            check_name(state.name),
            check_email(state.email),
            check_phone(state.phone_number),
            check_password(state.password),
            check_confirm_password(state.password, state.confirm_password),
        ]
        by_field = {error.field: error.message for error in errors if error is not None}
        self.set_state(
            name_error=by_field.get("name"),
            email_error=by_field.get("email"),
            phone_error=by_field.get("phone_number"),
            password_error=by_field.get("password"),
            confirm_password_error=by_field.get("confirm_password"),
        )
        return not by_field

    async def _register(self):
        state = self.state
        if state.is_loading or not self._validate(state):
            return
        if not self.connectivity.is_connected():
            self.emit_effect(ShowError(NO_CONNECTION))
            return

        self.set_state(is_loading=True)
        existing = crud.get_user_by_email(self.db, state.email)
        if isinstance(existing, Success):
            self.set_state(is_loading=False, email_error="Email already registered")
            self.emit_effect(ShowError("Email already registered"))
            return
        if existing.kind != ErrorKind.NOT_FOUND:
            self.set_state(is_loading=False)
            self.emit_effect(ShowError(existing.message or "Registration failed"))
            return

        result = crud.create_user(self.db, UserCreate(
            name=state.name,
            email=state.email,
            phone_number=state.phone_number,
            password=state.password,
        ))
        self.set_state(is_loading=False)
        if isinstance(result, Success):
            self.emit_effect(NavigateToProfileDetails(result.data.id))
        elif isinstance(result, Error) and result.kind == ErrorKind.ALREADY_EXISTS:
            self.set_state(email_error="Email already registered")
            self.emit_effect(ShowError("Email already registered"))
        else:
            self.emit_effect(ShowError(result.message or "Registration failed"))
