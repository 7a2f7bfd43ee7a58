import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

import crud
import schemas
from connectivity import ConnectivitySignal
from controller import StateController
from result import Error, ErrorKind, Success
from validators import check_email, check_password

logger = logging.getLogger(__name__)

NO_CONNECTION = "No internet connection"


@dataclass(frozen=True)
class LoginState:
    email: str = ""
    password: str = ""
    is_loading: bool = False
    email_error: Optional[str] = None
    password_error: Optional[str] = None


# Eventos
@dataclass(frozen=True)
class EmailChanged:
    email: str


@dataclass(frozen=True)
class PasswordChanged:
    password: str


@dataclass(frozen=True)
class LoginClicked:
    pass


@dataclass(frozen=True)
class RegisterClicked:
    pass


@dataclass(frozen=True)
class RetryConnection:
    pass


# Efectos
@dataclass(frozen=True)
class NavigateToHome:
    user: schemas.User


@dataclass(frozen=True)
class NavigateToRegister:
    pass


@dataclass(frozen=True)
class ShowError:
    message: str


class LoginController(StateController[LoginState, object, object]):

    def __init__(self, db: Session, connectivity: Optional[ConnectivitySignal] = None):
        self.db = db
        self.connectivity = connectivity or ConnectivitySignal()
        super().__init__()

    def create_initial_state(self) -> LoginState:
        return LoginState()

    async def handle_event(self, event):
        if isinstance(event, EmailChanged):
            self.set_state(email=event.email, email_error=None)
        elif isinstance(event, PasswordChanged):
            self.set_state(password=event.password, password_error=None)
        elif isinstance(event, LoginClicked):
            await self._login()
        elif isinstance(event, RegisterClicked):
            self.emit_effect(NavigateToRegister())
        elif isinstance(event, RetryConnection):
            if not self.connectivity.is_connected():
                self.emit_effect(ShowError(NO_CONNECTION))
        else:
            raise TypeError(f"Unexpected login event: {event!r}")

    def _validate(self, state: LoginState) -> bool:
        email_error = check_email(state.email)
        password_error = check_password(state.password)
        self.set_state(
            email_error=email_error.message if email_error else None,
            password_error=password_error.message if password_error else None,
        )
        return email_error is None and password_error is None

    async def _login(self):
        state = self.state
        if state.is_loading or not self._validate(state):
            return
        if not self.connectivity.is_connected():
            self.emit_effect(ShowError(NO_CONNECTION))
            return

        self.set_state(is_loading=True)
        result = crud.authenticate_user(self.db, state.email, state.password)
        self.set_state(is_loading=False)

        if isinstance(result, Success):
            logger.info(f"User {result.data.id} logged in")
            self.emit_effect(NavigateToHome(schemas.User.model_validate(result.data)))
        elif isinstance(result, Error) and result.kind == ErrorKind.INVALID_CREDENTIALS:
            self.emit_effect(ShowError("Invalid email or password"))
        else:
            self.emit_effect(ShowError(getattr(result, "message", None) or "Unknown error"))
