"""
Typed query filters.

A filter is a conjunction of predicates. Each predicate names a schema field
and is tagged by ``op`` so filters can also be parsed from plain JSON:

    Filter.model_validate({"predicates": [{"op": "eq", "field": "role", "value": "admin"}]})

Field names are checked against the entity schema when the filter is
compiled; unknown fields raise instead of matching nothing.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from collection_accessor.schemas.entity import EntitySchema


class _Predicate(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str

    def compile(self, schema: "EntitySchema") -> tuple[str, dict[str, Any]]:
        raise NotImplementedError


class _Comparison(_Predicate):
    value: Any
    operator: ClassVar[str] = ""

    def compile(self, schema: "EntitySchema") -> tuple[str, dict[str, Any]]:
        return schema.storage_key(self.field), {
            self.operator: schema.coerce_value(self.field, self.value)
        }


class Eq(_Comparison):
    op: Literal["eq"] = "eq"
    operator: ClassVar[str] = "$eq"


class Ne(_Comparison):
    op: Literal["ne"] = "ne"
    operator: ClassVar[str] = "$ne"


class Gt(_Comparison):
    op: Literal["gt"] = "gt"
    operator: ClassVar[str] = "$gt"


class Gte(_Comparison):
    op: Literal["gte"] = "gte"
    operator: ClassVar[str] = "$gte"


class Lt(_Comparison):
    op: Literal["lt"] = "lt"
    operator: ClassVar[str] = "$lt"


class Lte(_Comparison):
    op: Literal["lte"] = "lte"
    operator: ClassVar[str] = "$lte"


class In(_Predicate):
    op: Literal["in"] = "in"
    values: list[Any]

    def compile(self, schema: "EntitySchema") -> tuple[str, dict[str, Any]]:
        return schema.storage_key(self.field), {
            "$in": [schema.coerce_value(self.field, v) for v in self.values]
        }


class NotIn(_Predicate):
    op: Literal["nin"] = "nin"
    values: list[Any]

    def compile(self, schema: "EntitySchema") -> tuple[str, dict[str, Any]]:
        return schema.storage_key(self.field), {
            "$nin": [schema.coerce_value(self.field, v) for v in self.values]
        }


class Exists(_Predicate):
    op: Literal["exists"] = "exists"
    value: bool = True

    def compile(self, schema: "EntitySchema") -> tuple[str, dict[str, Any]]:
        return schema.storage_key(self.field), {"$exists": self.value}


Predicate = Annotated[
    Union[Eq, Ne, Gt, Gte, Lt, Lte, In, NotIn, Exists],
    Field(discriminator="op"),
]


class Filter(BaseModel):
    model_config = ConfigDict(frozen=True)

    predicates: tuple[Predicate, ...] = ()

    @classmethod
    def of(cls, *predicates: _Predicate) -> "Filter":
        for predicate in predicates:
            if not isinstance(predicate, _Predicate):
                raise TypeError(f"Expected a predicate, got {predicate!r}")
        return cls.model_construct(predicates=predicates)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Filter":
        return cls.model_construct(
            predicates=tuple(Eq(field=k, value=v) for k, v in mapping.items())
        )

    def __and__(self, other: "Filter") -> "Filter":
        return Filter.model_construct(predicates=self.predicates + other.predicates)

    def compile(self, schema: "EntitySchema") -> dict[str, Any]:
        clauses = [predicate.compile(schema) for predicate in self.predicates]

        query: dict[str, dict[str, Any]] = {}
        for key, condition in clauses:
            existing = query.setdefault(key, {})
            if existing.keys() & condition.keys():
                # Same operator twice on one field cannot share a sub-document.
                return {"$and": [{k: c} for k, c in clauses]}
            existing.update(condition)

        # A lone $eq collapses to the bare value unless that value is a document.
        compiled = {}
        for key, cond in query.items():
            if cond.keys() == {"$eq"} and not isinstance(cond["$eq"], dict):
                compiled[key] = cond["$eq"]
            else:
                compiled[key] = cond
        return compiled


FilterLike = Filter | Mapping[str, Any] | None


def compile_filter(filter: FilterLike, schema: "EntitySchema") -> dict[str, Any]:
    if filter is None:
        return {}
    if not isinstance(filter, Filter):
        filter = Filter.from_mapping(filter)
    return filter.compile(schema)
