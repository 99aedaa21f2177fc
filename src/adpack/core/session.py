"""Current asset root and path containment."""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

from adpack.core.errors import NotFoundError, OutOfBoundsError, RootBusyError

if TYPE_CHECKING:
    from adpack.settings import Settings

log = logging.getLogger(__name__)


class Session:
    """Holds the root directory every operation is confined to.

    The root only changes through ``change_root()``, which refuses while an
    operation started with ``operation()`` is still running.
    """

    def __init__(self, root: Path | str) -> None:
        self._root = self._validated_root(root)
        self._lock = threading.Lock()
        self._in_flight = 0

    @classmethod
    def from_settings(cls, settings: Settings) -> Session:
        """Create a session rooted at the persisted root, or the CWD."""
        return cls(settings.get("root") or os.getcwd())

    @property
    def root(self) -> Path:
        return self._root

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._in_flight > 0

    def resolve(self, path: Path | str) -> Path:
        """Resolve *path* against the root.

        Relative paths are joined to the root; absolute ones are taken as is.
        Either way the resolved path must stay inside the root subtree.

        Raises:
            OutOfBoundsError: If the resolved path escapes the root.
        """
        resolved = (self._root / path).resolve()
        if not resolved.is_relative_to(self._root):
            raise OutOfBoundsError(f"Path escapes root: {path}")
        return resolved

    def require_existing(self, path: Path | str) -> Path:
        """Resolve *path* and make sure it exists."""
        resolved = self.resolve(path)
        if not resolved.exists():
            raise NotFoundError(f"Path does not exist: {path}")
        return resolved

    @contextmanager
    def operation(self) -> Iterator[Path]:
        """Pin the root for the duration of a scan, estimate or batch."""
        with self._lock:
            self._in_flight += 1
            root = self._root
        try:
            yield root
        finally:
            with self._lock:
                self._in_flight -= 1

    def change_root(self, path: Path | str) -> Path:
        """Point the session at a new root directory.

        Raises:
            NotFoundError: If *path* is not an existing directory.
            RootBusyError: If an operation is running against the current root.
        """
        new_root = self._validated_root(path)
        with self._lock:
            if self._in_flight:
                raise RootBusyError(f"Cannot change root while {self._in_flight} operation(s) are running")
            self._root = new_root
        log.info("Root changed to %s", new_root)
        return new_root

    @staticmethod
    def _validated_root(path: Path | str) -> Path:
        resolved = Path(path).expanduser().resolve()
        if not resolved.is_dir():
            raise NotFoundError(f"Directory does not exist: {path}")
        return resolved
