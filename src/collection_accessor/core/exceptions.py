# core/exceptions.py

from typing import Any

from pymongo.errors import BulkWriteError, DuplicateKeyError, PyMongoError

DUPLICATE_KEY_CODES = {11000, 11001}


class AccessorException(Exception):
    def __init__(
        self, message: str, error_code: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AccessorException):
    def __init__(
        self,
        message: str = "Payload does not match the entity schema",
        errors: list[str] | None = None,
        error_code: str = "VALIDATION_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.errors = errors or []
        super().__init__(
            message, error_code=error_code, details={"errors": self.errors, **(details or {})}
        )


class UnknownFieldError(ValidationError):
    def __init__(self, field_name: str, entity: str, suggestions: list[str] | None = None):
        self.field_name = field_name
        self.entity = entity
        self.suggestions = suggestions or []
        message = f"Unknown field '{field_name}' for entity '{entity}'"
        if self.suggestions:
            message += f". Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(
            message,
            errors=[message],
            error_code="UNKNOWN_FIELD",
            details={"field": field_name, "entity": entity, "suggestions": self.suggestions},
        )


class ConstraintViolationError(AccessorException):
    def __init__(
        self, message: str = "Unique constraint violated", key: dict[str, Any] | None = None
    ):
        self.key = key or {}
        super().__init__(message, error_code="CONSTRAINT_VIOLATION", details={"key": self.key})


class NotFoundError(AccessorException):
    def __init__(self, entity: str, identifier: str):
        self.entity = entity
        self.identifier = identifier
        super().__init__(
            f"{entity} '{identifier}' not found",
            error_code="NOT_FOUND",
            details={"entity": entity, "id": identifier},
        )


class StoreConnectionError(AccessorException):
    def __init__(
        self, message: str = "Backing store unavailable", details: dict[str, Any] | None = None
    ):
        super().__init__(message, error_code="CONNECTION_ERROR", details=details)


def _is_duplicate_key(exc: PyMongoError) -> bool:
    if isinstance(exc, DuplicateKeyError):
        return True
    if isinstance(exc, BulkWriteError):
        write_errors = (exc.details or {}).get("writeErrors", [])
        return any(err.get("code") in DUPLICATE_KEY_CODES for err in write_errors)
    return False


def translate_store_error(exc: PyMongoError, entity: str) -> Exception:
    """Map driver errors onto the accessor taxonomy.

    Only duplicate-key failures are translated; anything else is returned
    unchanged so the caller can re-raise it verbatim.
    """
    if not _is_duplicate_key(exc):
        return exc

    details = exc.details or {}
    if isinstance(exc, BulkWriteError):
        write_errors = details.get("writeErrors", [])
        details = next(
            (err for err in write_errors if err.get("code") in DUPLICATE_KEY_CODES), {}
        )
    key = details.get("keyValue") or {}
    fields = ", ".join(key) if key else "a unique field"
    return ConstraintViolationError(f"{entity} with the same {fields} already exists", key=key)
