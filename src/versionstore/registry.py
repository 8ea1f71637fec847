"""Migration registry for versioned stores.

The registry is the migration table of a store: one function per version
transition, keyed by the version it upgrades from.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

from versionstore.base import (
    VERSION_KEY,
    ConfigurationError,
    Document,
    MigrationFunc,
    MigrationInfo,
    MigrationPathNotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """A single migration step from ``from_version`` to ``from_version + 1``."""

    from_version: int
    migrate_func: MigrationFunc
    description: str = ""

    @property
    def to_version(self) -> int:
        """The target version this migration produces."""
        return self.from_version + 1

    @property
    def info(self) -> MigrationInfo:
        """Get migration information."""
        return MigrationInfo(
            from_version=self.from_version,
            to_version=self.to_version,
            description=self.description,
        )

    def migrate(self, data: Document) -> Any:
        """Run the migration function."""
        return self.migrate_func(data)


def _check_version(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationError(f"{what} must be a positive integer, got {value!r}")
    return value


class MigrationRegistry:
    """Registry of migration steps.

    Example:
        >>> registry = MigrationRegistry()
        >>>
        >>> @registry.register(1)
        ... def nest_under_hide(data: dict) -> dict:
        ...     return {"hide": data}
        >>>
        >>> registry.validate(current_version=2)
        >>> [str(m.info) for m in registry.find_path(1, 2)]
        ['1 -> 2']
    """

    def __init__(self) -> None:
        """Initialize the registry."""
        self._migrations: dict[int, Migration] = {}

    @classmethod
    def from_mapping(cls, migrations: Mapping[int, MigrationFunc]) -> "MigrationRegistry":
        """Build a registry from a ``{from_version: function}`` mapping."""
        registry = cls()
        for from_version, func in migrations.items():
            registry.add(from_version, func)
        return registry

    def add(
        self,
        from_version: int,
        func: MigrationFunc,
        description: str = "",
    ) -> Migration:
        """Add a migration to the registry.

        Args:
            from_version: Version the migration upgrades from.
            func: Pure function returning the document shaped for the next version.
            description: Human-readable description.

        Raises:
            ConfigurationError: If the version is invalid or already registered.
        """
        _check_version(from_version, "Migration source version")
        if not callable(func):
            raise ConfigurationError(
                f"Migration for version {from_version} is not callable: {func!r}"
            )
        if from_version in self._migrations:
            raise ConfigurationError(
                f"Migration from version {from_version} already registered"
            )

        migration = Migration(
            from_version=from_version,
            migrate_func=func,
            description=description or (func.__doc__ or "").strip(),
        )
        self._migrations[from_version] = migration

        logger.debug(f"Registered migration: {migration.info}")
        return migration

    def register(
        self,
        from_version: int,
        description: str = "",
    ) -> Callable[[MigrationFunc], MigrationFunc]:
        """Decorator to register a migration function.

        Example:
            >>> @registry.register(2, "Add show.thread")
            ... def add_show(data: dict) -> dict:
            ...     return {**data, "show": {"thread": False}}
        """

        def decorator(func: MigrationFunc) -> MigrationFunc:
            self.add(from_version, func, description)
            return func

        return decorator

    def get(self, from_version: int) -> Migration | None:
        """Get the migration upgrading from a version, if any."""
        return self._migrations.get(from_version)

    def missing_versions(self, current_version: int) -> list[int]:
        """List versions in ``[1, current_version - 1]`` without a migration."""
        return [
            v for v in range(1, current_version) if v not in self._migrations
        ]

    def validate(self, current_version: int) -> None:
        """Check that every step up to ``current_version`` is covered.

        Raises:
            ConfigurationError: If the version is invalid or the table has a gap.
        """
        _check_version(current_version, "Current version")

        missing = self.missing_versions(current_version)
        if missing:
            raise MigrationPathNotFoundError(1, current_version, missing)

        extra = [v for v in self._migrations if v >= current_version]
        if extra:
            logger.debug(
                f"Ignoring migrations at or above version {current_version}: {sorted(extra)}"
            )

    def find_path(self, from_version: int, to_version: int) -> list[Migration]:
        """Get the ordered chain of migrations between two versions.

        Args:
            from_version: Starting version.
            to_version: Target version.

        Returns:
            Migrations to apply, in ascending order. Empty when the
            versions are equal or ``from_version`` is newer.

        Raises:
            MigrationPathNotFoundError: If a step is missing.
        """
        steps = range(from_version, to_version)
        missing = [v for v in steps if v not in self._migrations]
        if missing:
            raise MigrationPathNotFoundError(from_version, to_version, missing)
        return [self._migrations[v] for v in steps]

    def validate_chain(
        self,
        from_version: int,
        to_version: int,
        sample: Document,
    ) -> tuple[bool, list[str]]:
        """Run a chain over a copy of sample data without raising.

        Only the migration functions run; declared shapes are not checked.

        Args:
            from_version: Starting version.
            to_version: Target version.
            sample: Document at ``from_version``.

        Returns:
            Tuple of (success, list of error messages).
        """
        try:
            path = self.find_path(from_version, to_version)
        except MigrationPathNotFoundError as e:
            return False, [str(e)]

        data = copy.deepcopy(dict(sample))
        data.pop(VERSION_KEY, None)

        for migration in path:
            try:
                data = migration.migrate(data)
            except Exception as e:
                return False, [f"Migration {migration.info} failed: {e}"]
            if not isinstance(data, Mapping):
                return False, [
                    f"Migration {migration.info} returned "
                    f"{type(data).__name__}, expected a mapping"
                ]
            data = dict(data)
            data.pop(VERSION_KEY, None)

        return True, []

    def list_versions(self) -> list[int]:
        """List all source versions with a registered migration."""
        return sorted(self._migrations)

    def list_migrations(self) -> list[MigrationInfo]:
        """List all registered migrations in ascending order."""
        return [self._migrations[v].info for v in self.list_versions()]

    def __len__(self) -> int:
        """Get number of registered migrations."""
        return len(self._migrations)

    def __contains__(self, from_version: object) -> bool:
        """Check if a migration from a version exists."""
        return from_version in self._migrations
