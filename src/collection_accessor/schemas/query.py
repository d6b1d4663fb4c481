from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pymongo import ASCENDING, DESCENDING

from collection_accessor.core.exceptions import ValidationError

SortDir = Literal["asc", "desc"]

_SORT_DIR_ALIASES = {
    "asc": "asc",
    "ascending": "asc",
    "1": "asc",
    "desc": "desc",
    "descending": "desc",
    "-1": "desc",
}


class QueryOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    sort_by: str | None = Field(default=None, alias="sortBy")
    sort_dir: SortDir = Field(default="asc", alias="sortDir")
    limit: int = Field(default=0, ge=0, description="0 means no limit")
    offset: int = Field(default=0, ge=0)

    @field_validator("sort_dir", mode="before")
    @classmethod
    def normalize_sort_dir(cls, v: Any) -> Any:
        if isinstance(v, (str, int)) and not isinstance(v, bool):
            return _SORT_DIR_ALIASES.get(str(v).strip().lower(), v)
        return v

    @property
    def direction(self) -> int:
        return DESCENDING if self.sort_dir == "desc" else ASCENDING

    @classmethod
    def _by_field_name(cls, values: Mapping[str, Any]) -> dict[str, Any]:
        aliases = {info.alias: name for name, info in cls.model_fields.items() if info.alias}
        return {aliases.get(key, key): value for key, value in values.items()}

    @classmethod
    def coerce(
        cls, options: "QueryOptions | Mapping[str, Any] | None" = None, **overrides: Any
    ) -> "QueryOptions":
        if isinstance(options, QueryOptions) and not overrides:
            return options
        data: dict[str, Any] = {}
        if isinstance(options, QueryOptions):
            data = options.model_dump()
        elif options is not None:
            data = cls._by_field_name(options)
        data.update(cls._by_field_name(overrides))
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            errors = [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()]
            raise ValidationError("Invalid query options", errors=errors) from e
