"""
Cross-process file-based lock for shapes_interop.

Readers of a topic segment share the segment's READER_COUNT field; the
increment and decrement on attach / detach are read-modify-write cycles
and so must be serialised across processes.  This module provides a
lightweight advisory lock built on OS file locking (``fcntl`` on POSIX,
``msvcrt`` on Windows) for that purpose.
"""

import os
import sys
import time
import tempfile
import logging
from .exceptions import ShapesTimeoutError

logger = logging.getLogger("shapes.sync")

_IS_WINDOWS = sys.platform == "win32"

if not _IS_WINDOWS:
    import fcntl
else:
    import msvcrt


def _lock_path(name: str) -> str:
    """Return the absolute path of the lock file for *name*."""
    safe = name.replace("/", "_").replace("\\", "_")
    return os.path.join(tempfile.gettempdir(), f"{safe}.lock")


class FileLock:
    """Cross-process advisory lock backed by an OS lock file.

    Usage::

        with FileLock(segment_name, timeout=1.0):
            add_reader(shm, +1)

    Args:
        name:    A unique name identifying this lock (the segment name
                 it protects).
        timeout: Default acquire timeout in seconds. ``None`` keeps
                 spinning indefinitely.
    """

    def __init__(self, name: str, timeout: float | None = None):
        self._path = _lock_path(name)
        self._timeout = timeout
        self._fd: int | None = None

    def acquire(self, timeout: float | None = None) -> None:
        """Acquire the lock, blocking until *timeout* seconds have passed.

        Raises:
            ShapesTimeoutError: If the lock could not be acquired in time.
        """
        if timeout is None:
            timeout = self._timeout
        deadline = time.monotonic() + timeout if timeout is not None else None

        self._fd = os.open(self._path, os.O_RDWR | os.O_CREAT)

        while True:
            try:
                if _IS_WINDOWS:
                    msvcrt.locking(self._fd, msvcrt.LK_NBLCK, 1)
                else:
                    fcntl.flock(self._fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                return
            except OSError:
                pass  # held by another process

            if deadline is not None and time.monotonic() >= deadline:
                os.close(self._fd)
                self._fd = None
                raise ShapesTimeoutError(
                    f"Could not acquire lock '{self._path}' within "
                    f"{timeout:.3f}s"
                )
            time.sleep(0.000_050)

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            if _IS_WINDOWS:
                msvcrt.locking(self._fd, msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, *_) -> None:
        self.release()
