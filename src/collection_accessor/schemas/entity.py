import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from difflib import get_close_matches
from enum import Enum
from functools import cached_property
from typing import Any, Generic, TypeVar

from bson import Decimal128, ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_jsonable_python

from collection_accessor.core.exceptions import UnknownFieldError, ValidationError

ID_FIELD = "id"
VERSION_FIELD = "version"
SYSTEM_FIELDS = frozenset({ID_FIELD, VERSION_FIELD})


class Document(BaseModel):
    """Base class for entity schemas.

    ``id`` is assigned by the store (``_id``) and ``version`` is bumped on
    every update; neither may be supplied in a create or update payload.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = Field(default=None, alias="_id")
    version: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def stringify_object_id(cls, v: Any) -> Any:
        if isinstance(v, ObjectId):
            return str(v)
        return v


ModelT = TypeVar("ModelT", bound=Document)

IndexKeys = str | tuple[str, ...]


def unique(default: Any = ..., **kwargs: Any) -> Any:
    """Declare a field whose value must be unique across the collection."""
    extra = dict(kwargs.pop("json_schema_extra", None) or {})
    extra["unique"] = True
    return Field(default, json_schema_extra=extra, **kwargs)


def default_collection_name(entity: str) -> str:
    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", entity).lower()
    if re.search(r"(s|x|z|ch|sh)$", snake):
        return snake + "es"
    if re.search(r"[^aeiou]y$", snake):
        return snake[:-1] + "ies"
    return snake + "s"


def to_object_id(value: Any) -> ObjectId | None:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


_BSON_NATIVE = (bool, int, float, str, bytes, datetime, ObjectId, Decimal128)


def to_bson(value: Any) -> Any:
    """Convert a dumped model value into something the BSON encoder accepts.

    Enums store their value. Dates become midnight datetimes so range
    queries keep working, and decimals become Decimal128. Anything else the
    encoder does not know goes through pydantic's JSON-compatible form.
    """
    if isinstance(value, Enum):
        return to_bson(value.value)
    if value is None or isinstance(value, _BSON_NATIVE):
        return value
    if isinstance(value, BaseModel):
        return to_bson(value.model_dump())
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, Mapping):
        return {str(k): to_bson(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_bson(v) for v in value]
    return to_jsonable_python(value)


def from_bson(value: Any) -> Any:
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Mapping):
        return {k: from_bson(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_bson(v) for v in value]
    return value


def _format_errors(exc: PydanticValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors()
    ]


@dataclass(frozen=True)
class EntitySchema(Generic[ModelT]):
    name: str
    model: type[ModelT]
    collection_name: str
    indexes: tuple[IndexKeys, ...] = field(default=())

    @classmethod
    def from_model(
        cls,
        name: str,
        model: type[ModelT],
        collection_name: str | None = None,
        indexes: Iterable[IndexKeys] = (),
    ) -> "EntitySchema[ModelT]":
        if not (isinstance(model, type) and issubclass(model, Document)):
            raise TypeError(f"Schema for '{name}' must subclass Document, got {model!r}")
        return cls(
            name=name,
            model=model,
            collection_name=collection_name or default_collection_name(name),
            indexes=tuple(indexes),
        )

    @cached_property
    def field_names(self) -> frozenset[str]:
        return frozenset(self.model.model_fields)

    @cached_property
    def payload_fields(self) -> frozenset[str]:
        return self.field_names - SYSTEM_FIELDS

    @cached_property
    def unique_fields(self) -> tuple[str, ...]:
        return tuple(
            name
            for name, info in self.model.model_fields.items()
            if isinstance(info.json_schema_extra, dict) and info.json_schema_extra.get("unique")
        )

    def storage_key(self, name: str) -> str:
        self.check_field(name)
        return "_id" if name == ID_FIELD else name

    def check_field(self, name: str) -> None:
        if name in self.field_names:
            return
        suggestions = get_close_matches(name, sorted(self.field_names), n=3)
        raise UnknownFieldError(name, self.name, suggestions)

    def coerce_value(self, name: str, value: Any) -> Any:
        """Validate a single value against a field and return its storage form."""
        self.check_field(name)
        if name == ID_FIELD:
            oid = to_object_id(value)
            if oid is None:
                raise ValidationError(
                    f"Invalid identifier for {self.name}: {value!r}",
                    errors=[f"{ID_FIELD}: not a valid ObjectId"],
                )
            return oid
        # Assignment validation runs the model's own field validators for one field.
        instance = self.model.model_construct()
        try:
            self.model.__pydantic_validator__.validate_assignment(instance, name, value)
        except PydanticValidationError as e:
            errors = [f"{name}: {err['msg']}" for err in e.errors()]
            raise ValidationError(f"Invalid value for {self.name}.{name}", errors=errors) from e
        return to_bson(getattr(instance, name))

    def _payload_dict(self, payload: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
        if isinstance(payload, BaseModel):
            return payload.model_dump(exclude_unset=True)
        if not isinstance(payload, Mapping):
            raise ValidationError(
                f"{self.name} payload must be a mapping, got {type(payload).__name__}"
            )
        return dict(payload)

    def _check_payload_keys(self, data: Mapping[str, Any]) -> None:
        for key in data:
            if key in SYSTEM_FIELDS or key == "_id":
                raise ValidationError(
                    f"'{key}' is managed by the store and cannot be written",
                    errors=[f"{key}: read-only"],
                )
            self.check_field(key)

    def to_storage(self, payload: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
        """Validate a full create payload and return the document to insert."""
        data = self._payload_dict(payload)
        self._check_payload_keys(data)
        try:
            instance = self.model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid {self.name} payload", errors=_format_errors(e)
            ) from e
        document = to_bson(instance.model_dump(exclude={ID_FIELD}))
        document[VERSION_FIELD] = 0
        # Unset optional unique fields stay absent so the sparse index ignores them.
        for name in self.unique_fields:
            if document.get(name) is None:
                document.pop(name, None)
        return document

    def to_patch(self, patch: Mapping[str, Any] | BaseModel) -> tuple[dict[str, Any], list[str]]:
        """Validate a partial update; returns ($set fields, $unset fields)."""
        data = self._payload_dict(patch)
        self._check_payload_keys(data)
        to_set: dict[str, Any] = {}
        to_unset: list[str] = []
        for name, value in data.items():
            coerced = self.coerce_value(name, value)
            if coerced is None and name in self.unique_fields:
                to_unset.append(name)
            else:
                to_set[name] = coerced
        return to_set, to_unset

    def from_storage(self, raw: Mapping[str, Any]) -> ModelT:
        try:
            return self.model.model_validate(from_bson(raw))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Stored {self.name} document does not match its schema",
                errors=_format_errors(e),
            ) from e
