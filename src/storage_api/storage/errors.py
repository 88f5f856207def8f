"""Error taxonomy for storage operations.

Every failure leaving the storage layer is one of the four classes below.
The HTTP layer maps ``kind`` to a status code; nothing here formats responses.
"""

from __future__ import annotations

from typing import ClassVar


class StorageError(Exception):
    """Base class for failures raised by the path resolver and file operations."""

    kind: ClassVar[str] = "storage_error"
    public_message: ClassVar[str] = "Storage operation failed"

    def __init__(self, message: str | None = None, *, path: str | None = None) -> None:
        self.message = message or self.public_message
        self.path = path
        super().__init__(self.message)


class TraversalRejected(StorageError):
    """The raw path would resolve outside the storage root."""

    kind = "traversal_rejected"
    public_message = "Path traversal not allowed"


class NotFound(StorageError):
    kind = "not_found"
    public_message = "Path not found"


class NotAFile(StorageError):
    """The target exists but is not a regular file (e.g. a directory)."""

    kind = "not_a_file"
    public_message = "Path is not a file"


class IOFailure(StorageError):
    """Any other filesystem failure.

    ``message`` stays generic; the originating ``OSError`` is kept as
    ``__cause__`` for logging only.
    """

    kind = "io_failure"
    public_message = "I/O failure"
