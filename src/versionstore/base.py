"""Base types for versioned storage.

This module defines the exception hierarchy, enums and result records that
the registry, the path compiler and the store share.
"""

from __future__ import annotations

from collections.abc import Callable, MutableMapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# =============================================================================
# Exceptions
# =============================================================================


class StoreError(Exception):
    """Base exception for all versioned store errors."""

    pass


class ConfigurationError(StoreError):
    """Raised when a store is declared inconsistently.

    Configuration errors are fatal: the store refuses to be constructed.
    """

    pass


class MigrationPathNotFoundError(ConfigurationError):
    """Raised when the migration table has no entry for a required step."""

    def __init__(self, from_version: int, to_version: int, missing: list[int]) -> None:
        self.from_version = from_version
        self.to_version = to_version
        self.missing = missing
        super().__init__(
            f"No migration path from version {from_version} to version "
            f"{to_version}: missing migrations for versions {missing}"
        )


class MigrationError(StoreError):
    """Base exception for migration-related errors."""

    pass


class MigrationFailedError(MigrationError):
    """Raised when a migration step raises or returns a malformed document."""

    def __init__(self, from_version: int, to_version: int, message: str) -> None:
        self.from_version = from_version
        self.to_version = to_version
        super().__init__(
            f"Migration from version {from_version} to {to_version} failed: {message}"
        )


class IncompatibleVersionError(MigrationError):
    """Raised when stored data is newer than the code reading it."""

    def __init__(self, stored_version: int, current_version: int) -> None:
        self.stored_version = stored_version
        self.current_version = current_version
        super().__init__(
            f"Stored data is at version {stored_version}, which is newer than "
            f"the current version {current_version}"
        )


class PathError(StoreError):
    """Base exception for path access errors."""

    pass


class UnknownPathError(PathError, LookupError):
    """Raised when a path is not declared by the current schema."""

    def __init__(self, path: str, known: list[str] | None = None) -> None:
        self.path = path
        self.known = known or []
        super().__init__(f"Path not declared by the current schema: {path!r}")

    def __str__(self) -> str:
        return self.args[0]


class PathTypeError(PathError, TypeError):
    """Raised when a value does not match the declared type of a path."""

    def __init__(
        self,
        path: str,
        expected: str,
        actual: str,
        errors: list[str] | None = None,
    ) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        self.errors = errors or []
        message = f"Path {path!r} expects {expected}, got {actual}"
        if self.errors:
            message = f"{message} ({'; '.join(self.errors)})"
        super().__init__(message)


# =============================================================================
# Enums
# =============================================================================


class StoreAction(Enum):
    """What the initialize-or-migrate protocol did at construction."""

    INITIALIZED = "initialized"  # Empty document filled by the initializer
    MIGRATED = "migrated"  # Older document upgraded through the chain
    CURRENT = "current"  # Already at the current version, untouched
    PASSTHROUGH = "passthrough"  # Newer document left as-is


class DowngradePolicy(Enum):
    """How to treat a document written by a newer schema version."""

    REFUSE = "refuse"  # Raise IncompatibleVersionError
    PASSTHROUGH = "passthrough"  # Leave the document untouched, read best effort

    @classmethod
    def from_string(cls, value: str) -> "DowngradePolicy":
        """Parse a policy name (case insensitive)."""
        try:
            return cls(value.strip().lower())
        except ValueError as e:
            choices = ", ".join(p.value for p in cls)
            raise ValueError(
                f"Unknown downgrade policy {value!r} (expected one of: {choices})"
            ) from e


# =============================================================================
# Type Aliases
# =============================================================================

# Key holding the schema version inside every persisted document
VERSION_KEY = "version"

Document = dict[str, Any]
RawStorage = MutableMapping[str, Any]
MigrationFunc = Callable[[Document], Document]
Initializer = Callable[[], Document]


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class MigrationInfo:
    """Information about a single migration step.

    Attributes:
        from_version: Source version.
        to_version: Target version (always ``from_version + 1``).
        description: Human-readable description.
    """

    from_version: int
    to_version: int
    description: str = ""

    def __str__(self) -> str:
        return f"{self.from_version} -> {self.to_version}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "from_version": self.from_version,
            "to_version": self.to_version,
            "description": self.description,
        }


@dataclass
class MigrationResult:
    """Record of one initialize-or-migrate run.

    Attributes:
        action: What the run did.
        to_version: The current version of the store.
        from_version: Version found in the raw document (None when empty).
        start_time: When the run started.
        end_time: When the run finished.
        migrations_applied: Steps applied, in order.
        dry_run: Whether the run left the raw document untouched on purpose.
    """

    action: StoreAction
    to_version: int
    from_version: int | None = None
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    migrations_applied: list[MigrationInfo] = field(default_factory=list)
    dry_run: bool = False

    @property
    def duration_seconds(self) -> float:
        """Get run duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def changed(self) -> bool:
        """Whether the raw document was (or would be) rewritten."""
        return self.action in (StoreAction.INITIALIZED, StoreAction.MIGRATED)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "action": self.action.value,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": self.duration_seconds,
            "migrations_applied": [str(m) for m in self.migrations_applied],
            "dry_run": self.dry_run,
        }
