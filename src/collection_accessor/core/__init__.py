from .config import settings
from .exceptions import (
    AccessorException,
    ConstraintViolationError,
    NotFoundError,
    StoreConnectionError,
    UnknownFieldError,
    ValidationError,
)

__all__ = [
    "settings",
    "AccessorException",
    "ConstraintViolationError",
    "NotFoundError",
    "StoreConnectionError",
    "UnknownFieldError",
    "ValidationError",
]
