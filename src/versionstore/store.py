"""Versioned store implementation.

This module provides ``VersionedStore``, a typed view over an externally
owned raw document that guarantees the document is at the current schema
version before any read or write runs.

Example:
    >>> from versionstore import MigrationRegistry, VersionedStore
    >>>
    >>> registry = MigrationRegistry()
    >>>
    >>> @registry.register(1)
    ... def nest_under_hide(data: dict) -> dict:
    ...     return {"hide": data}
    >>>
    >>> raw = {"version": 1, "voice": True}
    >>> store = VersionedStore(
    ...     raw,
    ...     version=2,
    ...     initialize=lambda: {"hide": {"voice": True}},
    ...     migrations=registry,
    ... )
    >>> raw
    {'hide': {'voice': True}, 'version': 2}
    >>> store.set("hide.voice", False)
    >>> raw["hide"]["voice"]
    False
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from versionstore.base import (
    VERSION_KEY,
    ConfigurationError,
    Document,
    DowngradePolicy,
    IncompatibleVersionError,
    Initializer,
    MigrationFailedError,
    MigrationFunc,
    MigrationResult,
    RawStorage,
    StoreAction,
    UnknownPathError,
)
from versionstore.config import StoreSettings
from versionstore.paths import FieldAccessor, compile_accessors
from versionstore.registry import Migration, MigrationRegistry
from versionstore.schema import FieldSpec, SchemaShape

logger = logging.getLogger(__name__)


def read_version(storage: Mapping[str, Any]) -> int | None:
    """Get the version marker of a raw document, or None if unrecognizable."""
    version = storage.get(VERSION_KEY)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        return None
    return version


def _strip_version(document: Mapping[str, Any]) -> Document:
    return {k: v for k, v in document.items() if k != VERSION_KEY}


@dataclass
class StoreDefinition:
    """Everything needed to open a store, minus the raw document.

    Attributes:
        name: Identifier used in logs and the CLI.
        version: Current schema version.
        initialize: Factory for a fresh document at the current version.
        migrations: Migration table.
        schema: Shape of the current version (inferred when None).
        schemas: Declared shapes of older versions, keyed by version.
    """

    name: str
    version: int
    initialize: Initializer
    migrations: MigrationRegistry | Mapping[int, MigrationFunc] = field(
        default_factory=MigrationRegistry
    )
    schema: SchemaShape | None = None
    schemas: dict[int, SchemaShape] = field(default_factory=dict)

    @property
    def registry(self) -> MigrationRegistry:
        """The migration table as a registry."""
        if isinstance(self.migrations, MigrationRegistry):
            return self.migrations
        return MigrationRegistry.from_mapping(self.migrations)

    def open(
        self,
        storage: RawStorage,
        settings: StoreSettings | None = None,
    ) -> "VersionedStore":
        """Bind this definition to a raw document."""
        return VersionedStore.from_definition(self, storage, settings)


class VersionedStore:
    """Typed, versioned view over a raw persisted document.

    The store holds no copy of the data: every write goes straight into the
    raw document it was given, so whatever persists that object keeps
    working unmodified.

    Construction runs the initialize-or-migrate protocol eagerly:

    1. No recognizable ``version`` marker: the initializer's output plus
       ``version`` replaces the raw contents.
    2. ``version`` equal to the current version: nothing is touched.
    3. Older ``version``: every migration from that version up to
       ``current - 1`` runs in ascending order on a copy, then the result
       plus ``version`` replaces the raw contents.
    4. Newer ``version``: handled by ``StoreSettings.downgrade_policy``.
    """

    def __init__(
        self,
        storage: RawStorage,
        *,
        version: int,
        initialize: Initializer,
        migrations: MigrationRegistry | Mapping[int, MigrationFunc],
        schema: SchemaShape | None = None,
        schemas: Mapping[int, SchemaShape] | None = None,
        settings: StoreSettings | None = None,
        name: str = "store",
    ) -> None:
        """Initialize the store and bring the raw document up to date.

        Args:
            storage: The raw document, mutated in place.
            version: Current schema version.
            initialize: Zero-argument factory for a fresh document.
            migrations: Migration table covering ``1 .. version - 1``.
            schema: Shape of the current version (inferred when None).
            schemas: Shapes of older versions used to check migration steps.
            settings: Store settings (defaults when None).
            name: Identifier used in logs.

        Raises:
            ConfigurationError: If the declaration is inconsistent.
            MigrationFailedError: If a migration step fails.
            IncompatibleVersionError: If the document is newer and the
                downgrade policy refuses it.
        """
        self._storage = storage
        self._settings = settings or StoreSettings()
        self._name = name
        self._initialize = initialize

        self._registry = (
            migrations
            if isinstance(migrations, MigrationRegistry)
            else MigrationRegistry.from_mapping(migrations)
        )
        self._registry.validate(version)
        self._version = version

        # Only declared shapes check migration steps; an inferred one does not
        self._schemas: dict[int, SchemaShape] = dict(schemas or {})
        if schema is not None:
            self._schemas[version] = schema
        declared = self._schemas.get(version)
        self._schema = (
            declared if declared is not None else SchemaShape.infer(self._fresh_document())
        )
        self._accessors: dict[str, FieldAccessor] = compile_accessors(self._schema)

        self._last_result = self._initialize_or_migrate()

    @classmethod
    def from_definition(
        cls,
        definition: StoreDefinition,
        storage: RawStorage,
        settings: StoreSettings | None = None,
    ) -> "VersionedStore":
        """Create a store from a definition."""
        return cls(
            storage,
            version=definition.version,
            initialize=definition.initialize,
            migrations=definition.migrations,
            schema=definition.schema,
            schemas=definition.schemas,
            settings=settings,
            name=definition.name,
        )

    # -------------------------------------------------------------------------
    # Initialize-or-migrate
    # -------------------------------------------------------------------------

    def _fresh_document(self) -> Document:
        document = self._initialize()
        if not isinstance(document, Mapping):
            raise ConfigurationError(
                f"Initializer of '{self._name}' returned "
                f"{type(document).__name__}, expected a mapping"
            )
        return _strip_version(copy.deepcopy(dict(document)))

    def _replace_contents(self, document: Document) -> None:
        self._storage.clear()
        self._storage.update(document)
        self._storage[VERSION_KEY] = self._version

    def _initialize_or_migrate(self) -> MigrationResult:
        stored_version = read_version(self._storage)
        result = MigrationResult(
            action=StoreAction.CURRENT,
            from_version=stored_version,
            to_version=self._version,
        )

        if stored_version is None:
            if self._storage:
                logger.warning(
                    f"[{self._name}] Unrecognized version marker "
                    f"{self._storage.get(VERSION_KEY)!r}; discarding "
                    f"{len(self._storage)} stored field(s) and initializing"
                )
            self._replace_contents(self._fresh_document())
            result.action = StoreAction.INITIALIZED
            logger.info(f"[{self._name}] Initialized store at version {self._version}")

        elif stored_version > self._version:
            if self._settings.downgrade_policy is DowngradePolicy.REFUSE:
                raise IncompatibleVersionError(stored_version, self._version)
            logger.warning(
                f"[{self._name}] Stored data is at version {stored_version}, newer "
                f"than {self._version}; leaving it untouched"
            )
            result.action = StoreAction.PASSTHROUGH

        elif stored_version < self._version:
            path = self._registry.find_path(stored_version, self._version)
            document = self.run_migrations(path, self._storage)
            self._replace_contents(document)
            result.action = StoreAction.MIGRATED
            result.migrations_applied = [m.info for m in path]
            logger.info(
                f"[{self._name}] Migrated store from version {stored_version} to "
                f"{self._version} ({len(path)} step(s))"
            )

        result.end_time = datetime.now()
        return result

    def run_migrations(
        self,
        path: list[Migration],
        document: Mapping[str, Any],
    ) -> Document:
        """Apply a chain of migrations to a copy of a document.

        Args:
            path: Migrations in ascending order.
            document: Document at the first migration's source version.

        Returns:
            The migrated document, without a version marker.

        Raises:
            MigrationFailedError: If a step raises or returns a malformed document.
        """
        running = _strip_version(copy.deepcopy(dict(document)))

        for migration in path:
            try:
                output = migration.migrate(copy.deepcopy(running))
            except Exception as e:
                raise MigrationFailedError(
                    migration.from_version, migration.to_version, str(e) or repr(e)
                ) from e

            if not isinstance(output, Mapping):
                raise MigrationFailedError(
                    migration.from_version,
                    migration.to_version,
                    f"returned {type(output).__name__}, expected a mapping",
                )
            running = _strip_version(output)

            shape = self._schemas.get(migration.to_version)
            if shape is not None and self._settings.validate_migrations:
                errors = shape.validate(running, partial=True)
                if errors:
                    raise MigrationFailedError(
                        migration.from_version,
                        migration.to_version,
                        "; ".join(errors),
                    )

            logger.debug(f"[{self._name}] Applied migration: {migration.info}")

        return running

    # -------------------------------------------------------------------------
    # Typed access
    # -------------------------------------------------------------------------

    def _accessor(self, path: str) -> FieldAccessor:
        try:
            return self._accessors[path]
        except KeyError:
            raise UnknownPathError(path, list(self._accessors)) from None

    def get(self, path: str) -> Any:
        """Read the value at a declared path.

        Args:
            path: Dot-delimited path, e.g. ``"hide.voice"``.

        Returns:
            The stored value, or None if the path is absent from the document.

        Raises:
            UnknownPathError: If the path is not declared by the schema.
        """
        return self._accessor(path).get(self._storage)

    def set(self, path: str, value: Any) -> None:
        """Write a value at a declared path, straight into the raw document.

        Raises:
            UnknownPathError: If the path is not declared by the schema.
            PathTypeError: If the value does not match the declared type.
        """
        self._accessor(path).set(self._storage, value)

    def paths(self) -> list[FieldSpec]:
        """List the declared paths of the current schema."""
        return self._schema.paths()

    def to_dict(self) -> Document:
        """Get a deep copy of the raw document."""
        return copy.deepcopy(dict(self._storage))

    def __contains__(self, path: object) -> bool:
        accessor = self._accessors.get(path) if isinstance(path, str) else None
        return accessor is not None and accessor.exists(self._storage)

    def __repr__(self) -> str:
        return (
            f"VersionedStore(name={self._name!r}, version={self._version}, "
            f"stored_version={self.stored_version})"
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> int:
        """The current schema version."""
        return self._version

    @property
    def stored_version(self) -> int | None:
        """The version marker currently in the raw document."""
        return read_version(self._storage)

    @property
    def schema(self) -> SchemaShape:
        return self._schema

    @property
    def registry(self) -> MigrationRegistry:
        return self._registry

    @property
    def storage(self) -> RawStorage:
        """The raw document this store wraps."""
        return self._storage

    @property
    def settings(self) -> StoreSettings:
        return self._settings

    @property
    def last_result(self) -> MigrationResult:
        """What the initialize-or-migrate protocol did at construction."""
        return self._last_result
