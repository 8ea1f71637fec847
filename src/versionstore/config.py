"""Configuration for versioned stores.

Settings are merged from prioritized sources:

    ConfigSource[] (ordered by priority)
         |
         +---> FileConfigSource (YAML, JSON)
         +---> EnvConfigSource (environment variables)
         |
         v
    merge & validate
         |
         v
    ConfigProfile (dot-path access) ---> StoreSettings (typed)

Usage:
    >>> from versionstore.config import load_settings
    >>>
    >>> settings = load_settings(config_path="versionstore.yaml")
    >>> settings.downgrade_policy
    <DowngradePolicy.REFUSE: 'refuse'>

Environment variables use the ``VERSIONSTORE`` prefix and ``_`` for nesting,
e.g. ``VERSIONSTORE_STORE_DOWNGRADE_POLICY=passthrough``.
"""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from versionstore.base import DowngradePolicy


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(Exception):
    """Base configuration error."""

    pass


class ConfigValidationError(ConfigError):
    """Configuration validation error."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__(f"Configuration validation failed: {', '.join(errors)}")


class ConfigSourceError(ConfigError):
    """Configuration source error."""

    pass


# =============================================================================
# Configuration Sources
# =============================================================================


class ConfigSource(ABC):
    """Abstract base class for configuration sources.

    Sources are merged in priority order; higher priority overrides lower.
    """

    def __init__(self, priority: int = 0) -> None:
        self._priority = priority

    @property
    def priority(self) -> int:
        """Get source priority."""
        return self._priority

    @abstractmethod
    def load(self) -> dict[str, Any]:
        """Load configuration from source."""
        pass


class EnvConfigSource(ConfigSource):
    """Environment variable configuration source.

    Example:
        VERSIONSTORE_STORE_DOWNGRADE_POLICY=passthrough
        VERSIONSTORE_LOGGING_LEVEL=DEBUG

        With max_depth=2 will produce:
        {"store": {"downgrade_policy": "passthrough"}, "logging": {"level": "DEBUG"}}
    """

    def __init__(
        self,
        prefix: str = "VERSIONSTORE",
        separator: str = "_",
        priority: int = 100,
        max_depth: int | None = None,
    ) -> None:
        """Initialize environment source.

        Args:
            prefix: Environment variable prefix.
            separator: Separator for nested keys.
            priority: Source priority.
            max_depth: Nesting depth; the last level keeps remaining separators.
        """
        super().__init__(priority)
        self._prefix = prefix
        self._separator = separator
        self._max_depth = max_depth

    def load(self) -> dict[str, Any]:
        """Load configuration from environment."""
        result: dict[str, Any] = {}
        prefix = f"{self._prefix}{self._separator}"

        for key, value in os.environ.items():
            if not key.startswith(prefix):
                continue

            maxsplit = self._max_depth - 1 if self._max_depth else -1
            parts = key[len(prefix) :].lower().split(self._separator, maxsplit)

            current = result
            for part in parts[:-1]:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]

            current[parts[-1]] = self._parse_value(value)

        return result

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        if value.lower() in ("null", "none", ""):
            return None

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("[", "{")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value


class FileConfigSource(ConfigSource):
    """File-based configuration source.

    Supports YAML and JSON, detected from the file extension.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        required: bool = False,
        priority: int = 50,
    ) -> None:
        """Initialize file source.

        Args:
            path: Path to configuration file.
            required: Raise error if file not found.
            priority: Source priority.
        """
        super().__init__(priority)
        self._path = Path(path)
        self._required = required

    def load(self) -> dict[str, Any]:
        """Load configuration from file."""
        if not self._path.exists():
            if self._required:
                raise ConfigSourceError(f"Configuration file not found: {self._path}")
            return {}

        content = self._path.read_text(encoding="utf-8")
        suffix = self._path.suffix.lower()

        try:
            if suffix in (".yaml", ".yml"):
                loaded = yaml.safe_load(content) or {}
            elif suffix == ".json":
                loaded = json.loads(content) if content.strip() else {}
            else:
                raise ConfigSourceError(f"Unsupported file format: {suffix}")
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigSourceError(f"Failed to parse {self._path}: {e}") from e

        if not isinstance(loaded, dict):
            raise ConfigSourceError(
                f"Configuration file {self._path} must contain a mapping"
            )
        return loaded


# =============================================================================
# Configuration Profile
# =============================================================================


class ConfigProfile:
    """Dot-path access to a merged configuration dictionary.

    Example:
        >>> profile = ConfigProfile({"logging": {"level": "DEBUG"}})
        >>> profile.get("logging.level")
        'DEBUG'
        >>> profile.get_bool("store.validate_migrations", default=True)
        True
    """

    def __init__(self, config: dict[str, Any]) -> None:
        self._config = config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            key: Configuration key (dot-separated for nesting).
            default: Default value if not found.
        """
        value = self._get_nested(key.split("."))
        return default if value is None else value

    def get_str(self, key: str, default: str = "") -> str:
        """Get string configuration value."""
        value = self.get(key, default)
        return str(value) if value is not None else default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get boolean configuration value."""
        value = self.get(key, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "yes", "1", "on")
        return bool(value)

    def _get_nested(self, parts: list[str]) -> Any:
        current: Any = self._config
        for part in parts:
            if not isinstance(current, dict):
                return None
            current = current.get(part)
            if current is None:
                return None
        return current

    def to_dict(self) -> dict[str, Any]:
        """Get full configuration as dictionary."""
        return self._config.copy()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Deep merge ``override`` into ``base``."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            merge_config(base[key], value)
        else:
            base[key] = value


# =============================================================================
# Store Settings
# =============================================================================

LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LOG_FORMATS = ["console", "json", "logfmt"]


@dataclass
class StoreSettings:
    """Typed settings for versioned stores.

    Attributes:
        downgrade_policy: What to do with documents from a newer version.
        validate_migrations: Check each migration step against declared shapes.
        log_level: Level for the ``versionstore`` logger.
        log_format: Log output format ("console", "json", "logfmt").
        extra: Unrecognized settings, kept for callers.
    """

    downgrade_policy: DowngradePolicy = DowngradePolicy.REFUSE
    validate_migrations: bool = True
    log_level: str = "INFO"
    log_format: str = "console"
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_profile(cls, profile: ConfigProfile) -> "StoreSettings":
        """Build settings from a configuration profile.

        Raises:
            ConfigValidationError: If a value is out of range.
        """
        errors: list[str] = []

        policy = DowngradePolicy.REFUSE
        raw_policy = profile.get_str("store.downgrade_policy", "refuse")
        try:
            policy = DowngradePolicy.from_string(raw_policy)
        except ValueError as e:
            errors.append(str(e))

        log_level = profile.get_str("logging.level", "INFO").upper()
        if log_level not in LOG_LEVELS:
            errors.append(f"Field 'logging.level' must be one of {LOG_LEVELS}")

        log_format = profile.get_str("logging.format", "console").lower()
        if log_format not in LOG_FORMATS:
            errors.append(f"Field 'logging.format' must be one of {LOG_FORMATS}")

        if errors:
            raise ConfigValidationError(errors)

        config = profile.to_dict()
        extra = {k: v for k, v in config.items() if k not in ("store", "logging")}

        return cls(
            downgrade_policy=policy,
            validate_migrations=profile.get_bool("store.validate_migrations", True),
            log_level=log_level,
            log_format=log_format,
            extra=extra,
        )


def load_settings(
    *,
    config_path: str | Path | None = None,
    env_prefix: str = "VERSIONSTORE",
    use_env: bool = True,
) -> StoreSettings:
    """Load store settings.

    Args:
        config_path: Optional YAML/JSON settings file (must exist if given).
        env_prefix: Environment variable prefix.
        use_env: Read environment variables (override the file).

    Returns:
        StoreSettings instance.
    """
    sources: list[ConfigSource] = []
    if config_path is not None:
        sources.append(FileConfigSource(config_path, required=True, priority=50))
    if use_env:
        sources.append(EnvConfigSource(prefix=env_prefix, priority=100, max_depth=2))

    merged: dict[str, Any] = {}
    for source in sorted(sources, key=lambda s: s.priority):
        merge_config(merged, source.load())

    return StoreSettings.from_profile(ConfigProfile(merged))
