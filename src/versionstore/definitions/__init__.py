"""Store definitions.

A definition bundles the version, initializer, migration table and shapes
of one persisted document. ``load_definition`` resolves one from a
``module:attribute`` reference, the way the CLI receives it.
"""

from __future__ import annotations

import importlib

from versionstore.base import ConfigurationError
from versionstore.store import StoreDefinition

DEFAULT_DEFINITION = "versionstore.definitions.chat_input:DEFINITION"


def load_definition(reference: str) -> StoreDefinition:
    """Import a definition from a ``module:attribute`` reference.

    Raises:
        ConfigurationError: If the reference cannot be resolved.
    """
    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigurationError(
            f"Definition reference must look like 'module:attribute', got {reference!r}"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import {module_name!r}: {e}") from e

    definition = getattr(module, attribute, None)
    if not isinstance(definition, StoreDefinition):
        raise ConfigurationError(
            f"{reference!r} is not a StoreDefinition (got {type(definition).__name__})"
        )
    return definition


__all__ = ["DEFAULT_DEFINITION", "load_definition"]
