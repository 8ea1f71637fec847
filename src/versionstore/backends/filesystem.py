"""Filesystem-backed raw documents.

``FileDocument`` is a plain ``dict`` that remembers where it was loaded
from. A ``VersionedStore`` mutates it in place like any other raw document;
the owner decides when to ``flush()`` it back to disk.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from versionstore.base import StoreError

logger = logging.getLogger(__name__)

JSON_SUFFIXES = (".json",)
YAML_SUFFIXES = (".yaml", ".yml")


class DocumentReadError(StoreError):
    """Raised when a document file cannot be parsed."""

    pass


class DocumentWriteError(StoreError):
    """Raised when a document file cannot be written."""

    pass


class FileDocument(dict):
    """A raw document persisted as a JSON or YAML file.

    Example:
        >>> document = FileDocument.load("settings.json")
        >>> store = VersionedStore(document, version=4, ...)
        >>> store.set("hide.voice", False)
        >>> document.flush()
    """

    def __init__(
        self,
        path: str | Path,
        data: dict[str, Any] | None = None,
        *,
        pretty_print: bool = True,
    ) -> None:
        """Initialize the document.

        Args:
            path: File the document is flushed to.
            data: Initial contents.
            pretty_print: Whether to format JSON with indentation.
        """
        super().__init__(data or {})
        self.path = Path(path)
        self.pretty_print = pretty_print
        suffix = self.path.suffix.lower()
        if suffix not in JSON_SUFFIXES + YAML_SUFFIXES:
            raise DocumentReadError(f"Unsupported document format: {suffix or self.path}")

    @property
    def is_yaml(self) -> bool:
        return self.path.suffix.lower() in YAML_SUFFIXES

    @classmethod
    def load(cls, path: str | Path, **kwargs: Any) -> "FileDocument":
        """Load a document from disk; a missing or empty file loads as empty.

        Raises:
            DocumentReadError: If the file cannot be read or parsed.
        """
        document = cls(path, **kwargs)
        if not document.path.exists():
            logger.debug(f"No document at {document.path}, starting empty")
            return document

        try:
            content = document.path.read_text(encoding="utf-8")
        except OSError as e:
            raise DocumentReadError(f"Failed to read {document.path}: {e}") from e

        if not content.strip():
            return document

        try:
            if document.is_yaml:
                data = yaml.safe_load(content)
            else:
                data = json.loads(content)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise DocumentReadError(f"Failed to parse {document.path}: {e}") from e

        if data is None:
            return document
        if not isinstance(data, dict):
            raise DocumentReadError(
                f"Document {document.path} must contain a mapping, "
                f"got {type(data).__name__}"
            )

        document.update(data)
        logger.debug(f"Loaded document from {document.path}")
        return document

    def _serialize(self) -> str:
        if self.is_yaml:
            return yaml.safe_dump(dict(self), sort_keys=False, allow_unicode=True)
        indent = 2 if self.pretty_print else None
        return json.dumps(self, indent=indent, default=str) + "\n"

    def flush(self) -> None:
        """Write the document to disk atomically.

        Raises:
            DocumentWriteError: If the file cannot be written.
        """
        content = self._serialize()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise DocumentWriteError(f"Failed to write {self.path}: {e}") from e

        logger.debug(f"Flushed document to {self.path}")

    def __repr__(self) -> str:
        return f"FileDocument({str(self.path)!r}, {dict.__repr__(self)})"
