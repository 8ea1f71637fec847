"""versionstore - typed, versioned views over persisted settings documents."""

from versionstore.base import (
    ConfigurationError,
    DowngradePolicy,
    IncompatibleVersionError,
    MigrationError,
    MigrationFailedError,
    MigrationInfo,
    MigrationPathNotFoundError,
    MigrationResult,
    PathError,
    PathTypeError,
    StoreAction,
    StoreError,
    UnknownPathError,
)
from versionstore.config import StoreSettings, load_settings
from versionstore.registry import Migration, MigrationRegistry
from versionstore.schema import FieldSpec, SchemaShape
from versionstore.store import StoreDefinition, VersionedStore

__version__ = "0.1.0"

__all__ = [
    # Store
    "VersionedStore",
    "StoreDefinition",
    # Migrations
    "Migration",
    "MigrationRegistry",
    "MigrationInfo",
    "MigrationResult",
    "StoreAction",
    # Shapes
    "SchemaShape",
    "FieldSpec",
    # Settings
    "StoreSettings",
    "DowngradePolicy",
    "load_settings",
    # Errors
    "StoreError",
    "ConfigurationError",
    "MigrationPathNotFoundError",
    "MigrationError",
    "MigrationFailedError",
    "IncompatibleVersionError",
    "PathError",
    "UnknownPathError",
    "PathTypeError",
]
