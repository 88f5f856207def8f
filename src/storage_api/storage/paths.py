"""Confinement of caller-supplied paths to the storage root."""

from __future__ import annotations

import logging
import os
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

from .errors import TraversalRejected

logger = logging.getLogger(__name__)

_LEADING_PARENT_SEGMENTS = re.compile(r"^(?:\.\.(?:/|$))+")


@dataclass(frozen=True)
class ResolvedPath:
    """Absolute path proven to lie inside the storage root."""

    raw: str
    path: Path
    root: Path

    def __fspath__(self) -> str:
        return os.fspath(self.path)

    def __str__(self) -> str:
        return os.fspath(self.path)

    @property
    def is_root(self) -> bool:
        return self.path == self.root

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def parent(self) -> Path:
        return self.path.parent

    def relative_to_root(self) -> str:
        if self.is_root:
            return ""
        return self.path.relative_to(self.root).as_posix()


class PathResolver:
    """Turn untrusted relative paths into paths inside a fixed root.

    The root is canonicalised once at construction and never changes. Checks
    are purely lexical: symlinks below the root are not followed.
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(os.path.realpath(os.path.abspath(root)))
        root_str = os.fspath(self._root)
        self._prefix = root_str if root_str.endswith(os.sep) else root_str + os.sep

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, raw_path: str) -> ResolvedPath:
        """Resolve ``raw_path`` against the root.

        Raises ``TraversalRejected`` for inputs starting with parent segments,
        inputs containing NUL, and anything that normalises to a location
        outside the root.
        """
        if "\x00" in raw_path:
            self._reject(raw_path)
        unified = raw_path.replace("\\", "/")

        stripped = _LEADING_PARENT_SEGMENTS.sub("", unified)
        if stripped != unified:
            self._reject(raw_path)

        relative = posixpath.normpath(stripped) if stripped else ""
        if relative == ".":
            relative = ""

        candidate = os.path.normpath(os.path.join(os.fspath(self._root), relative))
        if not self._contains(candidate):
            self._reject(raw_path)

        return ResolvedPath(raw=raw_path, path=Path(candidate), root=self._root)

    def _contains(self, candidate: str) -> bool:
        return candidate == os.fspath(self._root) or candidate.startswith(self._prefix)

    def _reject(self, raw_path: str) -> NoReturn:
        logger.warning("Rejected path outside storage root: %r", raw_path)
        raise TraversalRejected(path=raw_path)
