"""File operations on paths already confined by ``PathResolver``."""

from __future__ import annotations

import logging
import os
import stat
from typing import AsyncIterable, AsyncIterator, Union

import aiofiles
import aiofiles.os

from .errors import IOFailure, NotAFile, NotFound
from .paths import ResolvedPath

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

Content = Union[bytes, AsyncIterable[bytes]]


def _require_resolved(*targets: object) -> None:
    for target in targets:
        if not isinstance(target, ResolvedPath):
            raise TypeError(f"expected ResolvedPath, got {type(target).__name__}")


def _io_failure(operation: str, target: ResolvedPath, exc: OSError) -> IOFailure:
    logger.warning("%s failed for %s: %s", operation, target.path, exc)
    return IOFailure(f"{operation} failed", path=target.raw)


def _nonblocking_opener(path: str, flags: int) -> int:
    # Opening a FIFO for reading without O_NONBLOCK waits for a writer
    return os.open(path, flags | getattr(os, "O_NONBLOCK", 0))


async def _iter_content(content: Content) -> AsyncIterator[bytes]:
    if isinstance(content, (bytes, bytearray, memoryview)):
        yield bytes(content)
        return
    async for chunk in content:
        yield chunk


class FileStream:
    """Single-pass async byte stream over an opened file.

    Iterating closes the handle at end of stream or on error. ``aclose`` may
    be called at any time (e.g. when the client goes away) and is idempotent.
    """

    def __init__(self, handle, *, size: int, target: ResolvedPath, chunk_size: int) -> None:
        self._handle = handle
        self._target = target
        self._chunk_size = chunk_size
        self._consumed = False
        self._closed = False
        self.size = size

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._consumed:
            raise RuntimeError("FileStream can only be iterated once")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        try:
            while True:
                try:
                    chunk = await self._handle.read(self._chunk_size)
                except OSError as exc:
                    raise _io_failure("Download", self._target, exc) from exc
                if not chunk:
                    break
                yield chunk
        finally:
            await self.aclose()

    async def read(self) -> bytes:
        """Drain the stream into memory."""
        return b"".join([chunk async for chunk in self])

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._handle.close()


class FileOperations:
    """Store, rename, read and delete files below the storage root.

    Callers must pass paths produced by ``PathResolver.resolve``; no traversal
    checks happen here. Filesystem failures leave as ``NotFound``,
    ``NotAFile`` or ``IOFailure``. Nothing is locked: concurrent requests on the
    same path race at the filesystem and the last call wins.
    """

    def __init__(self, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._chunk_size = chunk_size

    # ------------------------------------------------------------------- API
    async def store(self, target: ResolvedPath, content: Content) -> int:
        """Write ``content`` to ``target``, creating parent directories.

        An existing file is replaced. The write is not atomic: when it fails
        halfway the partially written file is left in place.
        """
        _require_resolved(target)
        written = 0
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(target.path, "wb") as fh:
                async for chunk in _iter_content(content):
                    written += await fh.write(chunk)
        except OSError as exc:
            raise _io_failure("Upload", target, exc) from exc
        logger.info("Stored %d bytes at %s", written, target.relative_to_root())
        return written

    async def rename(self, source: ResolvedPath, destination: ResolvedPath) -> None:
        """Move ``source`` to ``destination`` with the platform's rename.

        An existing destination file is overwritten where the platform does so
        (POSIX); on platforms that refuse, the refusal is an ``IOFailure``.
        """
        _require_resolved(source, destination)
        try:
            await aiofiles.os.rename(source.path, destination.path)
        except (FileNotFoundError, NotADirectoryError) as exc:
            if not await aiofiles.os.path.exists(source.path):
                raise NotFound(path=source.raw) from exc
            raise _io_failure("Rename", source, exc) from exc
        except OSError as exc:
            raise _io_failure("Rename", source, exc) from exc
        logger.info(
            "Renamed %s to %s",
            source.relative_to_root(),
            destination.relative_to_root(),
        )

    async def read_stream(self, target: ResolvedPath) -> FileStream:
        """Open ``target`` for a lazy chunked read.

        The file is opened before returning, so a file removed or replaced by
        a directory or other special file after the type check still fails
        here as ``NotFound`` or ``NotAFile``.
        """
        _require_resolved(target)
        await self._check_regular_file(target, "Download")
        try:
            handle = await aiofiles.open(target.path, "rb", opener=_nonblocking_opener)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFound(path=target.raw) from exc
        except IsADirectoryError as exc:
            raise NotAFile(path=target.raw) from exc
        except OSError as exc:
            raise _io_failure("Download", target, exc) from exc

        try:
            st = os.fstat(handle.fileno())
        except OSError as exc:
            await handle.close()
            raise _io_failure("Download", target, exc) from exc
        if not stat.S_ISREG(st.st_mode):
            await handle.close()
            raise NotAFile(path=target.raw)
        return FileStream(handle, size=st.st_size, target=target, chunk_size=self._chunk_size)

    async def delete(self, target: ResolvedPath) -> None:
        """Remove the regular file at ``target``. Directories are never removed."""
        _require_resolved(target)
        await self._check_regular_file(target, "Delete")
        try:
            await aiofiles.os.remove(target.path)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFound(path=target.raw) from exc
        except (IsADirectoryError, PermissionError) as exc:
            # unlink on a directory is EISDIR on Linux but EPERM on macOS
            if await aiofiles.os.path.isdir(target.path):
                raise NotAFile(path=target.raw) from exc
            raise _io_failure("Delete", target, exc) from exc
        except OSError as exc:
            raise _io_failure("Delete", target, exc) from exc
        logger.info("Deleted %s", target.relative_to_root())

    # ----------------------------------------------------------------- private
    async def _check_regular_file(self, target: ResolvedPath, operation: str) -> os.stat_result:
        try:
            st = await aiofiles.os.stat(target.path)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFound(path=target.raw) from exc
        except OSError as exc:
            raise _io_failure(operation, target, exc) from exc
        if not stat.S_ISREG(st.st_mode):
            raise NotAFile(path=target.raw)
        return st
