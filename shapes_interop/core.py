"""
Shared memory segment lifecycle management for shapes_interop.

Every DataWriter owns one named segment holding a ring buffer of
serialized samples.  This module owns the low-level create / attach /
destroy operations and defines the binary header layout.

Header layout (128 bytes, little-endian int64 values):
    Index  Offset  Field
    0      0       MAGIC  -- 0x3130534550414853  ("SHAPES01")
    1      8       VERSION
    2      16      HEAD          -- next write slot (updated only by writer)
    3      24      MSG_COUNT     -- total samples committed (commit counter)
    4      32      NUM_SLOTS
    5      40      SLOT_SIZE
    6      48      READER_COUNT  -- attached readers (updated under FileLock)
    7      56      CLOSED        -- 1 once the writer has shut down
    8      64      WRITER_ID     -- random id telling writer incarnations apart
    9      72      WRITER_PID    -- pid of the creating process
    10-15  80-127  RESERVED (zeros)

Data area starts at byte offset 128.
Each slot: first 4 bytes = payload size (little-endian uint32),
           remaining bytes = payload.
"""

import os
import sys
import logging
import numpy as np
from multiprocessing import shared_memory, resource_tracker
from .exceptions import ShapesConnectionError
from .utils import pid_alive

logger = logging.getLogger("shapes.core")

# ── Constants ────────────────────────────────────────────────────────────────

MAGIC: int = 0x3130534550414853  # b"SHAPES01" as little-endian int64
VERSION: int = 1
HEADER_SIZE: int = 128  # bytes

IDX_MAGIC = 0
IDX_VERSION = 1
IDX_HEAD = 2
IDX_MSG_COUNT = 3
IDX_NUM_SLOTS = 4
IDX_SLOT_SIZE = 5
IDX_READER_COUNT = 6
IDX_CLOSED = 7
IDX_WRITER_ID = 8
IDX_WRITER_PID = 9

# Each ring-buffer slot begins with a uint32 size prefix.
SLOT_PREFIX_SIZE: int = 4

# Segment name -> WRITER_ID of the segment this process created under
# that name and still tracks for unlinking at exit.
_owned: dict[str, int] = {}


def segment_size(num_slots: int, slot_size: int) -> int:
    """Return the total shared memory size in bytes for the given geometry."""
    return HEADER_SIZE + num_slots * slot_size


# ── Header helpers ────────────────────────────────────────────────────────────

def get_header(shm: shared_memory.SharedMemory) -> np.ndarray:
    """Return the live numpy int64 view of the 128-byte header.

    Reads and writes to individual int64 elements are atomic on all
    64-bit platforms (single-instruction store/load)::

        hdr = get_header(shm)
        count = int(hdr[IDX_MSG_COUNT])
    """
    return np.ndarray((16,), dtype="<i8", buffer=shm.buf, offset=0)


def _init_header(
    shm: shared_memory.SharedMemory,
    num_slots: int,
    slot_size: int,
) -> None:
    hdr = get_header(shm)
    hdr[:] = 0
    hdr[IDX_MAGIC] = MAGIC
    hdr[IDX_VERSION] = VERSION
    hdr[IDX_NUM_SLOTS] = num_slots
    hdr[IDX_SLOT_SIZE] = slot_size
    hdr[IDX_WRITER_ID] = np.random.default_rng().integers(1, 2**62)
    hdr[IDX_WRITER_PID] = os.getpid()
    logger.debug(
        "Header initialised: num_slots=%d slot_size=%d total=%d",
        num_slots,
        slot_size,
        segment_size(num_slots, slot_size),
    )


def _validate_header(shm: shared_memory.SharedMemory) -> None:
    """Raise :class:`ShapesConnectionError` if the header does not look
    like a shapes_interop segment."""
    # No header view may outlive this call: a live view blocks shm.close().
    hdr = get_header(shm)
    magic, version = int(hdr[IDX_MAGIC]), int(hdr[IDX_VERSION])
    del hdr
    if magic != MAGIC:
        raise ShapesConnectionError(
            f"Shared memory '{shm.name}' has invalid magic "
            f"0x{magic & 0xFFFFFFFFFFFFFFFF:016X} (expected 0x{MAGIC:016X})."
        )
    if version != VERSION:
        raise ShapesConnectionError(
            f"Shared memory '{shm.name}' has version "
            f"{version} but this library expects version {VERSION}."
        )


def untrack(shm: shared_memory.SharedMemory) -> None:
    """Stop this process's resource tracker from unlinking *shm* at exit.

    Attaching processes must not destroy a segment they do not own, and
    PERSISTENT writers leave theirs behind on purpose.  A segment this
    process created stops counting as created here.
    """
    wid = _owned.get(shm.name)
    if wid is not None and wid == int(get_header(shm)[IDX_WRITER_ID]):
        del _owned[shm.name]
    if sys.platform != "win32":
        resource_tracker.unregister(shm._name, "shared_memory")


def created_here(name: str) -> int | None:
    """Return the WRITER_ID of the segment this process created as *name*,
    or ``None`` if it created none that it still tracks."""
    return _owned.get(name)


def _live_owner(shm: shared_memory.SharedMemory) -> int | None:
    """Return the pid of the live writer still publishing on *shm*, or
    ``None`` if the segment is retired, orphaned or not ours."""
    if shm.size < HEADER_SIZE:
        return None
    hdr = get_header(shm)
    magic, closed, pid = int(hdr[IDX_MAGIC]), int(hdr[IDX_CLOSED]), int(hdr[IDX_WRITER_PID])
    del hdr
    if magic != MAGIC or closed:
        return None
    return pid if pid_alive(pid) else None


# ── Public API ────────────────────────────────────────────────────────────────

def create_segment(
    name: str,
    num_slots: int,
    slot_size: int,
) -> shared_memory.SharedMemory:
    """Create a new named shared memory segment and initialise its header.

    A segment already holding *name* is replaced when its writer has
    closed it (a PERSISTENT writer's history) or has died without doing
    so.  A segment whose writer is still alive is left alone.

    Raises:
        ShapesConnectionError: If a live writer already owns *name*, or
            the OS refuses to allocate the segment.

    Example::

        shm = create_segment("shapes_d0_Square_BLUE", num_slots=64, slot_size=256)
    """
    size = segment_size(num_slots, slot_size)

    try:
        existing = shared_memory.SharedMemory(name=name, create=False)
    except FileNotFoundError:
        existing = None
    except (OSError, ValueError) as exc:
        logger.debug("Could not inspect existing segment '%s': %s", name, exc)
        existing = None

    if existing is not None:
        owner = _live_owner(existing)
        if owner is not None:
            if name not in _owned:
                untrack(existing)
            existing.close()
            raise ShapesConnectionError(
                f"Shared memory '{name}' is in use by a live writer "
                f"(pid {owner}); only one writer per instance is allowed."
            )
        existing.close()
        existing.unlink()
        _owned.pop(name, None)
        logger.warning("Replaced stale shared memory segment '%s'", name)

    try:
        shm = shared_memory.SharedMemory(name=name, create=True, size=size)
    except OSError as exc:
        raise ShapesConnectionError(
            f"Failed to create shared memory '{name}' "
            f"({size} bytes): {exc}"
        ) from exc

    _init_header(shm, num_slots, slot_size)
    _owned[name] = int(get_header(shm)[IDX_WRITER_ID])
    logger.info("Created shared memory segment '%s' (%d bytes)", name, size)
    return shm


def open_segment(name: str) -> shared_memory.SharedMemory | None:
    """Attach to an existing segment without waiting.

    Returns:
        The attached segment, or ``None`` if no segment called *name*
        exists yet.

    Raises:
        ShapesConnectionError: If the segment exists but is not a valid
            shapes_interop segment.
    """
    try:
        if sys.version_info >= (3, 13):
            shm = shared_memory.SharedMemory(name=name, create=False, track=False)
        else:
            shm = shared_memory.SharedMemory(name=name, create=False)
            # The creator's own registration must survive a local reader.
            if name not in _owned:
                untrack(shm)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as exc:
        # ValueError: segment exists but is still zero-sized (mid-create)
        logger.debug("Segment '%s' not ready: %s", name, exc)
        return None

    if shm.size < HEADER_SIZE:
        shm.close()
        return None
    try:
        _validate_header(shm)
    except ShapesConnectionError:
        shm.close()
        raise
    logger.info("Attached to shared memory segment '%s'", name)
    return shm


def close_segment(
    shm: shared_memory.SharedMemory,
    *,
    destroy: bool = False,
) -> None:
    """Close (and optionally destroy) a shared memory segment.

    Only the creating process should pass ``destroy=True``.

    Example::

        close_segment(shm, destroy=True)   # writer tear-down
        close_segment(shm)                  # reader tear-down
    """
    name = shm.name
    try:
        shm.close()
        if destroy:
            _owned.pop(name, None)
            shm.unlink()
            logger.info("Destroyed shared memory segment '%s'", name)
        else:
            logger.debug("Closed shared memory segment '%s'", name)
    except (OSError, BufferError) as exc:
        logger.warning("Error closing segment '%s': %s", name, exc)
