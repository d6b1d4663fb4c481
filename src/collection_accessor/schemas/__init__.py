from .entity import Document, EntitySchema, unique
from .filters import Eq, Exists, Filter, Gt, Gte, In, Lt, Lte, Ne, NotIn
from .query import QueryOptions

__all__ = [
    "Document",
    "EntitySchema",
    "unique",
    "QueryOptions",
    "Filter",
    "Eq",
    "Ne",
    "Gt",
    "Gte",
    "Lt",
    "Lte",
    "In",
    "NotIn",
    "Exists",
]
