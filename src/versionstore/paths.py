"""Path-to-accessor compiler.

Each declared path of a shape is compiled once into a ``FieldAccessor``
holding its pre-split keys and declared type, so reads and writes never
parse path strings.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any

from versionstore.base import PathTypeError
from versionstore.schema import FieldSpec, SchemaShape

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldAccessor:
    """Compiled getter/setter for one declared path."""

    spec: FieldSpec
    keys: tuple[str, ...]
    shape: SchemaShape

    @property
    def path(self) -> str:
        return self.spec.path

    def get(self, document: Mapping[str, Any]) -> Any:
        """Read the value at this path.

        A path that is structurally absent from the document reads as
        ``None``.
        """
        current: Any = document
        for key in self.keys:
            if not isinstance(current, Mapping) or key not in current:
                logger.debug(f"Path '{self.path}' is absent from the document")
                return None
            current = current[key]
        return current

    def set(self, document: MutableMapping[str, Any], value: Any) -> None:
        """Write a value at this path, creating missing intermediate mappings.

        A mapping written to a group must match the group's declared fields;
        leaves it leaves out are allowed.

        Raises:
            PathTypeError: If the value does not match the declared type.
        """
        if not self.spec.accepts(value):
            raise PathTypeError(self.path, self.spec.type_name, type(value).__name__)
        if not self.spec.leaf:
            errors = self.shape.validate_group(self.path, value, partial=True)
            if errors:
                raise PathTypeError(
                    self.path, self.spec.type_name, type(value).__name__, errors
                )

        current = document
        for depth, key in enumerate(self.keys[:-1]):
            child = current.get(key)
            if not isinstance(child, MutableMapping):
                if child is not None:
                    parent = ".".join(self.keys[: depth + 1])
                    logger.warning(
                        f"Replacing non-mapping value at '{parent}' while "
                        f"writing '{self.path}'"
                    )
                child = {}
                current[key] = child
            current = child

        current[self.keys[-1]] = value

    def exists(self, document: Mapping[str, Any]) -> bool:
        """Check whether every key of the path is present."""
        current: Any = document
        for key in self.keys:
            if not isinstance(current, Mapping) or key not in current:
                return False
            current = current[key]
        return True


def compile_accessors(shape: SchemaShape) -> dict[str, FieldAccessor]:
    """Compile one accessor per declared path of a shape."""
    return {spec.path: FieldAccessor(spec, spec.keys, shape) for spec in shape.paths()}
