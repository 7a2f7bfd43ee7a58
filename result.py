"""
Resultados de las operaciones del núcleo de reservas.

Las operaciones de catálogo, reservas y usuarios no lanzan excepciones para
los fallos esperados: devuelven ``Success``, ``Error`` o ``LOADING`` y el
llamador decide si reintenta, muestra un mensaje o cambia de estado.
"""

import enum
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    INVALID_RANGE = "invalid_range"
    RESOURCE_NOT_FOUND = "resource_not_found"
    RESOURCE_UNAVAILABLE = "resource_unavailable"
    PERSISTENCE_FAILURE = "persistence_failure"
    VALIDATION_ERROR = "validation_error"
    UNKNOWN_STATUS = "unknown_status"
    NOT_FOUND = "not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class Success(Generic[T]):
    data: T


@dataclass(frozen=True)
class Error:
    kind: ErrorKind
    message: Optional[str] = None
    # Campo del formulario, sólo para VALIDATION_ERROR
    field: Optional[str] = None


class Loading:
    """Marcador de operación en curso."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "LOADING"


LOADING = Loading()

Result = Union[Success[Any], Error, Loading]

