"""Raw document backends.

Any ``MutableMapping`` works as a raw document. This package adds:

- filesystem: ``FileDocument``, a dict persisted as a JSON or YAML file

    >>> from versionstore.backends import FileDocument
    >>> document = FileDocument.load("settings.yaml")
"""

from versionstore.backends.filesystem import (
    DocumentReadError,
    DocumentWriteError,
    FileDocument,
)

__all__ = ["DocumentReadError", "DocumentWriteError", "FileDocument"]
