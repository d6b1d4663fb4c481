"""
Unit tests for entity schemas.

Tests cover:
- Schema construction and collection naming
- Unique field discovery
- Create payload and patch validation
- Field value coercion
- Conversion to and from BSON-safe values
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from bson import Decimal128, ObjectId
from pydantic import BaseModel

from collection_accessor.core.exceptions import UnknownFieldError, ValidationError
from collection_accessor.schemas.entity import (
    EntitySchema,
    default_collection_name,
    from_bson,
    to_bson,
    to_object_id,
)
from tests.models import Account, Color, Event, Member, Profile, User


class TestEntitySchema:
    """Tests for EntitySchema construction."""

    def test_from_model_defaults(self):
        schema = EntitySchema.from_model("User", User)

        assert schema.name == "User"
        assert schema.model is User
        assert schema.collection_name == "users"
        assert schema.indexes == ()

    def test_from_model_rejects_plain_models(self):
        class NotADocument(BaseModel):
            name: str

        with pytest.raises(TypeError):
            EntitySchema.from_model("Thing", NotADocument)

    def test_schema_is_immutable(self):
        schema = EntitySchema.from_model("User", User)

        with pytest.raises(AttributeError):
            schema.name = "Other"

    def test_field_names(self):
        schema = EntitySchema.from_model("User", User)

        assert schema.field_names == {"id", "version", "name", "role"}
        assert schema.payload_fields == {"name", "role"}

    def test_unique_fields(self):
        assert EntitySchema.from_model("Account", Account).unique_fields == ("email",)
        assert EntitySchema.from_model("User", User).unique_fields == ()

    @pytest.mark.parametrize(
        "entity,expected",
        [
            ("User", "users"),
            ("BlogPost", "blog_posts"),
            ("Status", "statuses"),
            ("Company", "companies"),
            ("Day", "days"),
        ],
    )
    def test_default_collection_name(self, entity, expected):
        assert default_collection_name(entity) == expected


class TestToStorage:
    """Tests for create payload validation."""

    @pytest.fixture
    def schema(self):
        return EntitySchema.from_model("Profile", Profile)

    def test_valid_payload(self, schema):
        document = schema.to_storage({"handle": "joe", "bio": "hi"})

        assert document == {"handle": "joe", "bio": "hi", "version": 0}

    def test_defaults_applied(self, schema):
        document = schema.to_storage({"handle": "joe"})

        assert document["bio"] == ""

    def test_unset_optional_unique_field_is_omitted(self, schema):
        """Absent values must not collide in the unique index."""
        document = schema.to_storage({"bio": "hi"})

        assert "handle" not in document

    def test_constraint_violation(self, schema):
        with pytest.raises(ValidationError) as exc_info:
            schema.to_storage({"handle": "joe", "bio": "x" * 21})

        assert exc_info.value.error_code == "VALIDATION_ERROR"
        assert any(e.startswith("bio") for e in exc_info.value.errors)

    def test_unknown_field(self, schema):
        with pytest.raises(UnknownFieldError) as exc_info:
            schema.to_storage({"handel": "joe"})

        assert exc_info.value.suggestions == ["handle"]
        assert exc_info.value.error_code == "UNKNOWN_FIELD"

    @pytest.mark.parametrize("key", ["id", "_id", "version"])
    def test_system_fields_rejected(self, schema, key):
        with pytest.raises(ValidationError):
            schema.to_storage({key: "x"})

    def test_non_mapping_rejected(self, schema):
        with pytest.raises(ValidationError):
            schema.to_storage(["handle", "joe"])


class TestToPatch:
    """Tests for partial update validation."""

    @pytest.fixture
    def schema(self):
        return EntitySchema.from_model("Profile", Profile)

    def test_only_given_fields(self, schema):
        to_set, to_unset = schema.to_patch({"bio": "new"})

        assert to_set == {"bio": "new"}
        assert to_unset == []

    def test_null_unique_field_is_unset(self, schema):
        to_set, to_unset = schema.to_patch({"handle": None})

        assert to_set == {}
        assert to_unset == ["handle"]

    def test_field_constraints_checked(self, schema):
        with pytest.raises(ValidationError):
            schema.to_patch({"bio": "x" * 21})

    def test_unknown_field(self, schema):
        with pytest.raises(UnknownFieldError):
            schema.to_patch({"nickname": "x"})

    def test_field_validators_applied(self):
        """Patched values are normalized the same way as on create."""
        schema = EntitySchema.from_model("Member", Member)

        to_set, _ = schema.to_patch({"email": " A@X.COM "})

        assert to_set == {"email": "a@x.com"}
        assert schema.to_storage({"email": "A@X.COM"})["email"] == to_set["email"]


class TestCoerceValue:
    """Tests for single field coercion."""

    def test_lax_int(self):
        schema = EntitySchema.from_model("Account", Account)

        assert schema.coerce_value("age", "42") == 42

    def test_invalid_value(self):
        schema = EntitySchema.from_model("Account", Account)

        with pytest.raises(ValidationError):
            schema.coerce_value("age", "forty")

    def test_id_becomes_object_id(self):
        schema = EntitySchema.from_model("User", User)
        oid = ObjectId()

        assert schema.coerce_value("id", str(oid)) == oid
        assert schema.storage_key("id") == "_id"

    def test_malformed_id(self):
        schema = EntitySchema.from_model("User", User)

        with pytest.raises(ValidationError):
            schema.coerce_value("id", "123")

    def test_filter_value_normalized(self):
        schema = EntitySchema.from_model("Member", Member)

        assert schema.coerce_value("email", "Bob@X.com") == "bob@x.com"

    def test_date_and_enum_values(self):
        schema = EntitySchema.from_model("Event", Event)

        assert schema.coerce_value("day", "2024-01-02") == datetime(2024, 1, 2)
        assert schema.coerce_value("color", "red") == "red"


class TestFromStorage:
    """Tests for turning stored documents into models."""

    def test_object_id_stringified(self):
        schema = EntitySchema.from_model("User", User)
        oid = ObjectId()

        user = schema.from_storage({"_id": oid, "name": "Joe", "version": 2})

        assert user.id == str(oid)
        assert user.version == 2

    def test_extra_stored_fields_ignored(self):
        schema = EntitySchema.from_model("User", User)

        user = schema.from_storage({"_id": ObjectId(), "name": "Joe", "legacy": True})

        assert not hasattr(user, "legacy")

    def test_corrupt_document(self):
        schema = EntitySchema.from_model("User", User)

        with pytest.raises(ValidationError):
            schema.from_storage({"_id": ObjectId(), "role": "admin"})


def test_to_object_id():
    oid = ObjectId()

    assert to_object_id(oid) is oid
    assert to_object_id(str(oid)) == oid
    assert to_object_id("zzz") is None
    assert to_object_id(None) is None


class TestBsonValues:
    """Dates, enums and decimals are stored in a form BSON can encode."""

    def test_to_storage_converts_date_and_enum(self):
        schema = EntitySchema.from_model("Event", Event)

        document = schema.to_storage({"name": "launch", "day": "2024-01-02", "color": "red"})

        assert document["day"] == datetime(2024, 1, 2)
        assert document["color"] == "red"
        assert type(document["color"]) is str

    def test_stored_event_reads_back(self):
        schema = EntitySchema.from_model("Event", Event)
        document = schema.to_storage({"name": "launch", "day": date(2024, 1, 2), "color": "blue"})

        event = schema.from_storage({**document, "_id": ObjectId()})

        assert event.day == date(2024, 1, 2)
        assert event.color is Color.BLUE

    def test_nested_values(self):
        value = to_bson({"when": date(2024, 1, 2), "tags": {Color.RED}, "price": Decimal("1.5")})

        assert value == {
            "when": datetime(2024, 1, 2),
            "tags": ["red"],
            "price": Decimal128("1.5"),
        }

    def test_datetime_unchanged(self):
        moment = datetime(2024, 1, 2, 10, 30)

        assert to_bson(moment) is moment

    def test_decimal128_read_back_as_decimal(self):
        assert from_bson({"price": [Decimal128("2.25")]}) == {"price": [Decimal("2.25")]}
