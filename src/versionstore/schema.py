"""Declared document shapes.

A shape describes one schema version as a nested mapping whose leaves are
Python types. Shapes drive path validation on the store and, optionally,
the validation of each migration step's output.

Example:
    >>> shape = SchemaShape({
    ...     "hide": {"voice": bool, "gift": bool},
    ...     "show": {"thread": bool},
    ... })
    >>> [spec.path for spec in shape.paths()]
    ['hide', 'hide.voice', 'hide.gift', 'show', 'show.thread']
    >>> shape.validate({"hide": {"voice": True}, "show": {"thread": "no"}})
    ["Required field 'hide.gift' is missing", "Field 'show.thread' should be bool, got str"]
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from versionstore.base import VERSION_KEY, ConfigurationError

PATH_SEPARATOR = "."


@dataclass(frozen=True)
class FieldSpec:
    """Declared field of a shape.

    Attributes:
        path: Dot-delimited path from the document root.
        types: Accepted Python types. Interior nodes accept any mapping.
        leaf: Whether the field is a leaf (False for nested groups).
    """

    path: str
    types: tuple[type, ...]
    leaf: bool = True

    @property
    def keys(self) -> tuple[str, ...]:
        """Path split into its keys."""
        return tuple(self.path.split(PATH_SEPARATOR))

    @property
    def type_name(self) -> str:
        """Readable name of the accepted types."""
        if not self.leaf:
            return "mapping"
        return " | ".join(t.__name__ for t in self.types)

    def accepts(self, value: Any) -> bool:
        """Check whether a value matches the declared type."""
        if not self.leaf:
            return isinstance(value, Mapping)
        if object in self.types:
            return True
        # bool is an int subclass but never a valid int/float setting
        if isinstance(value, bool):
            return bool in self.types
        if float in self.types and isinstance(value, int):
            return True
        return isinstance(value, self.types)


def _leaf_types(path: str, declared: Any) -> tuple[type, ...]:
    if isinstance(declared, type):
        return (declared,)
    if (
        isinstance(declared, tuple)
        and declared
        and all(isinstance(t, type) for t in declared)
    ):
        return declared
    raise ConfigurationError(
        f"Field '{path}' must be declared as a type, a tuple of types or a "
        f"mapping, got {declared!r}"
    )


class SchemaShape:
    """Shape of a document at one schema version."""

    def __init__(self, fields: Mapping[str, Any]) -> None:
        """Initialize the shape.

        Args:
            fields: Nested mapping of keys to types (or to nested mappings).

        Raises:
            ConfigurationError: If the declaration is malformed.
        """
        if VERSION_KEY in fields:
            raise ConfigurationError(
                f"'{VERSION_KEY}' is reserved for the schema version marker"
            )
        self._specs: dict[str, FieldSpec] = {}
        self._fields = self._declare(fields, prefix="")

    def _declare(self, fields: Mapping[str, Any], prefix: str) -> dict[str, Any]:
        declared: dict[str, Any] = {}
        for key, value in fields.items():
            if not isinstance(key, str) or not key or PATH_SEPARATOR in key:
                raise ConfigurationError(
                    f"Invalid field name {key!r} under '{prefix or '<root>'}'"
                )
            path = f"{prefix}{PATH_SEPARATOR}{key}" if prefix else key

            if isinstance(value, Mapping):
                self._specs[path] = FieldSpec(path, (Mapping,), leaf=False)
                declared[key] = self._declare(value, path)
            else:
                types = _leaf_types(path, value)
                self._specs[path] = FieldSpec(path, types)
                declared[key] = types if len(types) > 1 else types[0]
        return declared

    @classmethod
    def infer(cls, document: Mapping[str, Any]) -> "SchemaShape":
        """Derive a shape from a sample document.

        Leaves take the type of their sample value; ``None`` leaves accept
        anything. The version marker is ignored.
        """

        def walk(node: Mapping[str, Any]) -> dict[str, Any]:
            fields: dict[str, Any] = {}
            for key, value in node.items():
                if isinstance(value, Mapping):
                    fields[key] = walk(value)
                elif value is None:
                    fields[key] = object
                else:
                    fields[key] = type(value)
            return fields

        sample = {k: v for k, v in document.items() if k != VERSION_KEY}
        return cls(walk(sample))

    def paths(self) -> list[FieldSpec]:
        """List every declared field, groups before their children."""
        return list(self._specs.values())

    def leaves(self) -> Iterator[FieldSpec]:
        """Iterate over leaf fields only."""
        return (spec for spec in self._specs.values() if spec.leaf)

    def field(self, path: str) -> FieldSpec | None:
        """Get the declared field at a path."""
        return self._specs.get(path)

    def validate(self, document: Mapping[str, Any], partial: bool = False) -> list[str]:
        """Validate a document against the shape.

        Keys the shape does not declare are allowed.

        Args:
            document: Document to check.
            partial: Only require groups; missing leaves are not errors,
                present leaves are still type-checked.

        Returns:
            List of validation errors (empty if valid).
        """
        errors: list[str] = []
        self._validate_node(document, self._fields, "", errors, partial)
        return errors

    def validate_group(
        self,
        path: str,
        value: Mapping[str, Any],
        partial: bool = False,
    ) -> list[str]:
        """Validate a mapping against the declared fields of a group.

        Errors name full paths from the document root.

        Raises:
            ConfigurationError: If ``path`` is not a declared group.
        """
        spec = self._specs.get(path)
        if spec is None or spec.leaf:
            raise ConfigurationError(f"'{path}' is not a declared group")

        fields: Any = self._fields
        for key in spec.keys:
            fields = fields[key]

        errors: list[str] = []
        self._validate_node(value, fields, path, errors, partial)
        return errors

    def _validate_node(
        self,
        node: Mapping[str, Any],
        fields: Mapping[str, Any],
        prefix: str,
        errors: list[str],
        partial: bool,
    ) -> None:
        for key, declared in fields.items():
            path = f"{prefix}{PATH_SEPARATOR}{key}" if prefix else key
            spec = self._specs[path]

            if key not in node:
                if not (partial and spec.leaf):
                    errors.append(f"Required field '{path}' is missing")
                continue

            value = node[key]
            if not spec.accepts(value):
                errors.append(
                    f"Field '{path}' should be {spec.type_name}, "
                    f"got {type(value).__name__}"
                )
                continue

            if not spec.leaf:
                self._validate_node(value, declared, path, errors, partial)

    def to_dict(self) -> dict[str, Any]:
        """Get the declaration with type names instead of types."""

        def render(fields: Mapping[str, Any], prefix: str) -> dict[str, Any]:
            out: dict[str, Any] = {}
            for key, declared in fields.items():
                path = f"{prefix}{PATH_SEPARATOR}{key}" if prefix else key
                spec = self._specs[path]
                out[key] = render(declared, path) if not spec.leaf else spec.type_name
            return out

        return render(self._fields, "")

    def __contains__(self, path: object) -> bool:
        return path in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SchemaShape):
            return NotImplemented
        return self._specs == other._specs

    def __repr__(self) -> str:
        return f"SchemaShape({self.to_dict()!r})"
