"""
Miscellaneous utilities for shapes_interop.
"""

import os
import re
import sys
import time
import logging
from multiprocessing import shared_memory

logger = logging.getLogger("shapes.utils")

SEGMENT_PREFIX = "shapes_"

_UNSAFE = re.compile(r"[^A-Za-z0-9.-]")


# ── Platform detection ────────────────────────────────────────────────────────

def is_linux() -> bool:
    return sys.platform == "linux"


# ── SHM name helpers ──────────────────────────────────────────────────────────

def _safe(part: str) -> str:
    return _UNSAFE.sub("_", part)


def topic_prefix(domain_id: int, topic: str) -> str:
    """Return the segment-name prefix shared by all writers of a topic."""
    return f"{SEGMENT_PREFIX}d{domain_id}_{_safe(topic)}_"


def writer_segment_name(domain_id: int, topic: str, key: str) -> str:
    """Return the SHM segment name owned by the writer of instance *key*.

    Example::

        >>> writer_segment_name(0, "Square", "BLUE")
        'shapes_d0_Square_BLUE'
    """
    return topic_prefix(domain_id, topic) + _safe(key)


# ── Process helpers ───────────────────────────────────────────────────────────

def pid_alive(pid: int) -> bool:
    """Return ``True`` if a process with *pid* exists on this host.

    Always ``True`` on Windows, where probing with signal 0 would
    terminate the process.
    """
    if pid <= 0:
        return False
    if sys.platform == "win32":
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


# ── Polling helpers ───────────────────────────────────────────────────────────

def poll_until(
    check_fn,
    timeout: float | None,
    poll_interval: float = 0.000_100,
):
    """Spin-call *check_fn()* until it returns a truthy value or
    *timeout* expires.

    Args:
        check_fn:      Callable returning the result or ``None``/falsy.
        timeout:       Seconds. ``None`` = block indefinitely.
        poll_interval: Sleep time between retries (seconds).

    Returns:
        The first truthy value returned by *check_fn*, or ``None`` on timeout.
    """
    deadline = (time.monotonic() + timeout) if timeout is not None else None

    while True:
        result = check_fn()
        if result:
            return result

        if deadline is not None and time.monotonic() >= deadline:
            return None

        time.sleep(poll_interval)


# ── Cleanup helpers ───────────────────────────────────────────────────────────

def force_unlink(name: str) -> bool:
    """Forcibly destroy a shared memory segment by name if it exists.

    Useful for cleaning up after crashes, and for removing the segments
    that PERSISTENT writers leave behind.

    Returns:
        ``True`` if the segment existed and was destroyed,
        ``False`` if it was not found.

    Example::

        force_unlink("shapes_d0_Square_BLUE")
    """
    try:
        shm = shared_memory.SharedMemory(name=name, create=False)
        shm.close()
        shm.unlink()
        logger.info("Force-unlinked segment '%s'", name)
        return True
    except FileNotFoundError:
        return False
    except Exception as exc:
        logger.warning("Could not unlink '%s': %s", name, exc)
        return False


def list_segments(prefix: str = SEGMENT_PREFIX) -> list[str]:
    """List shared memory segments whose name starts with *prefix*.

    Only works on Linux (reads ``/dev/shm``). Returns an empty list
    on other platforms.
    """
    if not is_linux():
        logger.debug("list_segments() is only supported on Linux.")
        return []
    try:
        return sorted(
            entry
            for entry in os.listdir("/dev/shm")
            if entry.startswith(prefix)
        )
    except OSError as exc:
        logger.warning("Could not list /dev/shm: %s", exc)
        return []
