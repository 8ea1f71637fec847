"""Unit tests for schema shapes and compiled path accessors."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from versionstore.base import ConfigurationError, PathTypeError
from versionstore.paths import compile_accessors
from versionstore.schema import FieldSpec, SchemaShape


@pytest.fixture
def shape() -> SchemaShape:
    return SchemaShape({
        "hide": {"voice": bool, "gift": bool},
        "show": {"thread": bool},
        "limit": (int, type(None)),
        "ratio": float,
    })


class TestFieldSpec:
    """Tests for FieldSpec."""

    def test_keys(self) -> None:
        """Test splitting the path."""
        assert FieldSpec("hide.voice", (bool,)).keys == ("hide", "voice")

    def test_type_name(self) -> None:
        """Test readable type names."""
        assert FieldSpec("a", (int, str)).type_name == "int | str"
        assert FieldSpec("a", (dict,), leaf=False).type_name == "mapping"

    def test_bool_is_not_int(self) -> None:
        """Test bool values never satisfy numeric fields."""
        assert not FieldSpec("a", (int,)).accepts(True)
        assert not FieldSpec("a", (float,)).accepts(False)
        assert FieldSpec("a", (bool,)).accepts(False)

    def test_int_accepted_for_float(self) -> None:
        """Test ints widen to floats."""
        assert FieldSpec("a", (float,)).accepts(3)
        assert not FieldSpec("a", (int,)).accepts(3.5)

    def test_object_accepts_anything(self) -> None:
        """Test untyped leaves."""
        assert FieldSpec("a", (object,)).accepts(None)


class TestSchemaShape:
    """Tests for SchemaShape."""

    def test_paths(self, shape: SchemaShape) -> None:
        """Test groups are listed before their children."""
        assert [spec.path for spec in shape.paths()] == [
            "hide",
            "hide.voice",
            "hide.gift",
            "show",
            "show.thread",
            "limit",
            "ratio",
        ]
        assert len(shape) == 7
        assert "hide.voice" in shape
        assert "hide.app" not in shape

    def test_leaves(self, shape: SchemaShape) -> None:
        """Test only leaves are iterated."""
        assert "hide" not in [spec.path for spec in shape.leaves()]

    def test_field(self, shape: SchemaShape) -> None:
        """Test looking up a field."""
        spec = shape.field("show")

        assert spec is not None
        assert spec.leaf is False
        assert shape.field("nope") is None

    def test_version_key_reserved(self) -> None:
        """Test version cannot be declared."""
        with pytest.raises(ConfigurationError, match="reserved"):
            SchemaShape({"version": int})

    @pytest.mark.parametrize(
        "fields",
        [
            {"a": "bool"},
            {"a": ()},
            {"a.b": bool},
            {"": bool},
            {"a": {"b": 1}},
        ],
    )
    def test_malformed_declaration(self, fields: dict[str, Any]) -> None:
        """Test malformed declarations are rejected."""
        with pytest.raises(ConfigurationError):
            SchemaShape(fields)

    def test_infer(self) -> None:
        """Test deriving a shape from a sample document."""
        shape = SchemaShape.infer({
            "version": 4,
            "hide": {"voice": True},
            "name": "x",
            "note": None,
        })

        assert shape.to_dict() == {
            "hide": {"voice": "bool"},
            "name": "str",
            "note": "object",
        }

    def test_equality(self) -> None:
        """Test shapes compare by declaration."""
        assert SchemaShape({"a": {"b": bool}}) == SchemaShape.infer({"a": {"b": True}})
        assert SchemaShape({"a": bool}) != SchemaShape({"a": int})

    def test_validate_ok(self, shape: SchemaShape) -> None:
        """Test a valid document, with undeclared extras."""
        document = {
            "hide": {"voice": True, "gift": False, "app": True},
            "show": {"thread": False},
            "limit": None,
            "ratio": 1,
            "other": [1],
        }

        assert shape.validate(document) == []

    def test_validate_errors(self, shape: SchemaShape) -> None:
        """Test missing and mistyped fields."""
        errors = shape.validate({
            "hide": {"voice": "yes"},
            "show": [],
            "limit": 3,
            "ratio": 0.5,
        })

        assert errors == [
            "Field 'hide.voice' should be bool, got str",
            "Required field 'hide.gift' is missing",
            "Field 'show' should be mapping, got list",
        ]

    def test_validate_partial(self, shape: SchemaShape) -> None:
        """Test partial mode only requires groups."""
        assert shape.validate({"hide": {}, "show": {}}, partial=True) == []
        assert shape.validate({"hide": {"voice": 1}}, partial=True) == [
            "Field 'hide.voice' should be bool, got int",
            "Required field 'show' is missing",
        ]


class TestValidateGroup:
    """Tests for SchemaShape.validate_group."""

    def test_nested_groups(self) -> None:
        """Test errors name full paths, and nested groups stay required."""
        shape = SchemaShape({"outer": {"inner": {"flag": bool}, "count": int}})

        assert shape.validate_group("outer", {"inner": {}}, partial=True) == []
        assert shape.validate_group("outer", {"count": True}, partial=True) == [
            "Required field 'outer.inner' is missing",
            "Field 'outer.count' should be int, got bool",
        ]

    def test_not_a_group(self, shape: SchemaShape) -> None:
        """Test leaves and unknown paths are rejected."""
        with pytest.raises(ConfigurationError):
            shape.validate_group("hide.voice", {})
        with pytest.raises(ConfigurationError):
            shape.validate_group("nope", {})


class TestFieldAccessors:
    """Tests for compiled accessors."""

    def test_compile(self, shape: SchemaShape) -> None:
        """Test one accessor per path."""
        accessors = compile_accessors(shape)

        assert list(accessors) == [spec.path for spec in shape.paths()]
        assert accessors["hide.voice"].keys == ("hide", "voice")

    def test_get(self, shape: SchemaShape) -> None:
        """Test reading leaves, groups and absent paths."""
        accessors = compile_accessors(shape)
        document = {"hide": {"voice": False}, "show": "broken"}

        assert accessors["hide.voice"].get(document) is False
        assert accessors["hide"].get(document) == {"voice": False}
        assert accessors["hide.gift"].get(document) is None
        assert accessors["show.thread"].get(document) is None

    def test_exists(self, shape: SchemaShape) -> None:
        """Test presence checks."""
        accessors = compile_accessors(shape)
        document = {"hide": {"voice": False}, "limit": None}

        assert accessors["hide.voice"].exists(document)
        assert accessors["limit"].exists(document)
        assert not accessors["hide.gift"].exists(document)

    def test_set_creates_groups(self, shape: SchemaShape) -> None:
        """Test intermediate mappings are created."""
        document: dict[str, Any] = {}

        compile_accessors(shape)["show.thread"].set(document, True)

        assert document == {"show": {"thread": True}}

    def test_set_keeps_siblings(self, shape: SchemaShape) -> None:
        """Test writes touch only the target key."""
        document = {"hide": {"voice": True, "gift": True, "app": False}}

        compile_accessors(shape)["hide.gift"].set(document, False)

        assert document == {"hide": {"voice": True, "gift": False, "app": False}}

    def test_set_replaces_non_mapping(
        self, shape: SchemaShape, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test a scalar in the way of a group is replaced with a warning."""
        document: dict[str, Any] = {"show": "broken"}

        with caplog.at_level(logging.WARNING, logger="versionstore"):
            compile_accessors(shape)["show.thread"].set(document, True)

        assert document == {"show": {"thread": True}}
        assert "Replacing non-mapping value at 'show'" in caplog.text

    def test_set_group_validates_fields(self, shape: SchemaShape) -> None:
        """Test a group write is checked against the group's leaves."""
        accessors = compile_accessors(shape)
        document: dict[str, Any] = {"hide": {"voice": True}}

        with pytest.raises(PathTypeError) as exc_info:
            accessors["hide"].set(document, {"voice": "nope", "gift": 1})

        assert exc_info.value.errors == [
            "Field 'hide.voice' should be bool, got str",
            "Field 'hide.gift' should be bool, got int",
        ]
        assert document == {"hide": {"voice": True}}

        accessors["hide"].set(document, {"gift": False, "extra": "kept"})
        assert document == {"hide": {"gift": False, "extra": "kept"}}

    def test_set_type_check(self, shape: SchemaShape) -> None:
        """Test values are checked against the declared type."""
        accessors = compile_accessors(shape)
        document: dict[str, Any] = {}

        with pytest.raises(PathTypeError) as exc_info:
            accessors["limit"].set(document, "3")

        assert exc_info.value.expected == "int | NoneType"
        assert exc_info.value.actual == "str"
        assert document == {}

        accessors["limit"].set(document, None)
        accessors["ratio"].set(document, 2)
        assert document == {"limit": None, "ratio": 2}
