"""Error kinds and the tagged result returned by room operations.

Registry and ledger code raises :class:`RoomError` subclasses. The access
coordinator and moderation authority wrap every public operation with
:func:`recover`, which turns those errors into ``Result.fail`` values and
rolls the unit of work back. Storage faults and any other unexpected
exception are rolled back, logged and re-raised.
"""

import enum
import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    not_found = "not_found"
    forbidden = "forbidden"
    conflict = "conflict"
    room_full = "room_full"
    invalid_credentials = "invalid_credentials"
    validation_error = "validation_error"
    invalid_state = "invalid_state"
    invalid_operation = "invalid_operation"


class RoomError(Exception):
    kind: ErrorKind = ErrorKind.invalid_operation
    default_message = "Operation failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFoundError(RoomError):
    kind = ErrorKind.not_found
    default_message = "Room not found"


class ForbiddenError(RoomError):
    kind = ErrorKind.forbidden
    default_message = "You are not allowed to do that"


class ConflictError(RoomError):
    kind = ErrorKind.conflict
    default_message = "Conflicting request"


class RoomFullError(RoomError):
    kind = ErrorKind.room_full
    default_message = "Room is full"


class InvalidCredentialsError(RoomError):
    kind = ErrorKind.invalid_credentials
    default_message = "Invalid room password"


class ValidationFailed(RoomError):
    kind = ErrorKind.validation_error
    default_message = "Invalid input"


class InvalidStateError(RoomError):
    kind = ErrorKind.invalid_state
    default_message = "Operation would leave the room in an invalid state"


class InvalidOperationError(RoomError):
    kind = ErrorKind.invalid_operation
    default_message = "Invalid operation"


@dataclass
class Result(Generic[T]):
    success: bool
    value: T | None = None
    error: ErrorKind | None = None
    message: str | None = None

    @classmethod
    def ok(cls, value: T | None = None, message: str | None = None) -> "Result[T]":
        return cls(success=True, value=value, message=message)

    @classmethod
    def fail(cls, error: ErrorKind, message: str) -> "Result[T]":
        return cls(success=False, error=error, message=message)


def recover(func: Callable[..., "Result[Any]"]) -> Callable[..., "Result[Any]"]:
    """Run a service method as one unit of work on ``self.db``."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except RoomError as exc:
            self.db.rollback()
            logger.info("%s rejected: %s (%s)", func.__name__, exc.message, exc.kind.value)
            return Result.fail(exc.kind, exc.message)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("%s failed at the storage layer", func.__name__)
            raise
        except Exception:
            self.db.rollback()
            logger.exception("%s failed unexpectedly", func.__name__)
            raise

    return wrapper
