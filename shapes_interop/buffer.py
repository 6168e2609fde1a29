"""
Lock-free ring buffer operations for shapes_interop.

One writer per segment, any number of readers.  No Python-level locks
are used here; correctness relies on numpy ``int64`` element reads and
writes being single machine instructions on 64-bit platforms.

Readers do not share a tail.  Each reader addresses messages by their
absolute sequence number; sequence ``n`` lives in slot ``n % num_slots``
and is readable once ``MSG_COUNT > n``.  The writer overwrites old slots
unconditionally, so a reader that falls more than ``num_slots - 1``
messages behind is *lapped* and skips ahead, counting the loss.

Layout recap (see core.py for the full header description):
    HEAD       — written only by the writer.
    MSG_COUNT  — written only by the writer, *after* the slot data
                 (this is the commit step).
    Slot       — [ payload_size : uint32 (4 bytes) ]
                 [ payload      : bytes (slot_size - 4 bytes) ]
"""

import struct
import logging
from typing import NamedTuple

import numpy as np
from multiprocessing import shared_memory

from .core import (
    HEADER_SIZE,
    SLOT_PREFIX_SIZE,
    IDX_HEAD,
    IDX_MSG_COUNT,
    IDX_NUM_SLOTS,
    IDX_SLOT_SIZE,
    IDX_READER_COUNT,
    IDX_CLOSED,
    IDX_WRITER_ID,
    get_header,
)

logger = logging.getLogger("shapes.buffer")

_SIZE_STRUCT = struct.Struct("<I")  # little-endian unsigned 32-bit int


class ReadResult(NamedTuple):
    payload: bytes
    next_seq: int
    lost: int


# ── Low-level slot I/O ────────────────────────────────────────────────────────

def _geometry(shm: shared_memory.SharedMemory) -> tuple[int, int]:
    """Return ``(num_slots, slot_size)``."""
    hdr = get_header(shm)
    return int(hdr[IDX_NUM_SLOTS]), int(hdr[IDX_SLOT_SIZE])


def _slot_offset(slot_index: int, slot_size: int) -> int:
    return HEADER_SIZE + slot_index * slot_size


def _write_slot(
    shm: shared_memory.SharedMemory,
    slot_index: int,
    slot_size: int,
    payload: bytes,
) -> None:
    """Write *payload* into a single slot.  Does NOT advance any pointer."""
    offset = _slot_offset(slot_index, slot_size)
    _SIZE_STRUCT.pack_into(shm.buf, offset, len(payload))
    end = offset + SLOT_PREFIX_SIZE + len(payload)
    shm.buf[offset + SLOT_PREFIX_SIZE : end] = payload


def _read_slot(
    shm: shared_memory.SharedMemory,
    slot_index: int,
    slot_size: int,
) -> bytes:
    offset = _slot_offset(slot_index, slot_size)
    (payload_size,) = _SIZE_STRUCT.unpack_from(shm.buf, offset)
    payload_size = min(payload_size, slot_size - SLOT_PREFIX_SIZE)
    start = offset + SLOT_PREFIX_SIZE
    return bytes(shm.buf[start : start + payload_size])


# ── Writer side ───────────────────────────────────────────────────────────────

def write_message(shm: shared_memory.SharedMemory, payload: bytes) -> int:
    """Write *payload* bytes into the ring buffer, overwriting the oldest
    slot when the ring is full.

    Algorithm:
        1. Write payload into slot[head].
        2. Advance head to (head + 1) % num_slots.
        3. Increment MSG_COUNT — this is the *commit* step readers use.

    Returns:
        The sequence number assigned to the message.

    Raises:
        ValueError: If *payload* is larger than the slot can hold.

    Example::

        seq = write_message(shm, b"hello world")
    """
    num_slots, slot_size = _geometry(shm)
    max_payload = slot_size - SLOT_PREFIX_SIZE

    if len(payload) > max_payload:
        raise ValueError(
            f"Payload size {len(payload)} exceeds slot capacity {max_payload}. "
            f"Increase slot_size when creating the writer."
        )

    hdr = get_header(shm)
    head = int(hdr[IDX_HEAD])
    seq = int(hdr[IDX_MSG_COUNT])
    next_head = (head + 1) % num_slots

    _write_slot(shm, head, slot_size, payload)

    hdr[IDX_HEAD] = np.int64(next_head)
    hdr[IDX_MSG_COUNT] = np.int64(seq + 1)

    logger.debug("Wrote %d bytes to slot %d (seq %d)", len(payload), head, seq)
    return seq


def mark_closed(shm: shared_memory.SharedMemory) -> None:
    """Flag the segment as abandoned by its writer."""
    get_header(shm)[IDX_CLOSED] = 1


# ── Reader side ───────────────────────────────────────────────────────────────

def current_sequence(shm: shared_memory.SharedMemory) -> int:
    """Return the sequence number the next written message will get."""
    return int(get_header(shm)[IDX_MSG_COUNT])


def oldest_sequence(shm: shared_memory.SharedMemory, limit: int | None = None) -> int:
    """Return the oldest sequence number still safely retained.

    Args:
        limit: Retain at most this many messages (a reader's KEEP_LAST
               depth).  ``None`` means as many as the ring holds.
    """
    hdr = get_header(shm)
    count = int(hdr[IDX_MSG_COUNT])
    retained = int(hdr[IDX_NUM_SLOTS]) - 1
    if limit is not None:
        retained = min(retained, limit)
    return max(0, count - retained)


def read_message_at(
    shm: shared_memory.SharedMemory,
    seq: int,
) -> ReadResult | None:
    """Non-blocking read of message *seq*.

    If the writer has lapped the reader, the read skips forward to the
    oldest retained message and reports how many were lost.

    Returns:
        A :class:`ReadResult` or ``None`` if no message at or after *seq*
        has been committed yet.

    Example::

        seq = 0
        result = read_message_at(shm, seq)
        if result:
            data, seq, lost = result
    """
    hdr = get_header(shm)
    num_slots = int(hdr[IDX_NUM_SLOTS])
    slot_size = int(hdr[IDX_SLOT_SIZE])
    lost = 0

    while True:
        count = int(hdr[IDX_MSG_COUNT])
        if seq >= count:
            return None

        oldest = max(0, count - (num_slots - 1))
        if seq < oldest:
            lost += oldest - seq
            seq = oldest

        payload = _read_slot(shm, seq % num_slots, slot_size)

        # The writer may have overwritten the slot while we copied it.
        if int(hdr[IDX_MSG_COUNT]) - seq <= num_slots - 1:
            break
        logger.debug("Slot for seq %d overwritten during read, retrying", seq)

    return ReadResult(payload, seq + 1, lost)


def is_closed(shm: shared_memory.SharedMemory) -> bool:
    return bool(get_header(shm)[IDX_CLOSED])


def writer_id(shm: shared_memory.SharedMemory) -> int:
    return int(get_header(shm)[IDX_WRITER_ID])


def reader_count(shm: shared_memory.SharedMemory) -> int:
    return int(get_header(shm)[IDX_READER_COUNT])


def add_reader(shm: shared_memory.SharedMemory, delta: int) -> int:
    """Adjust READER_COUNT by *delta*.  The caller must hold the
    segment's :class:`~shapes_interop.sync.FileLock`."""
    hdr = get_header(shm)
    value = max(0, int(hdr[IDX_READER_COUNT]) + delta)
    hdr[IDX_READER_COUNT] = np.int64(value)
    return value


# ── Stats helper ──────────────────────────────────────────────────────────────

def get_stats(shm: shared_memory.SharedMemory) -> dict:
    """Return a snapshot of the ring buffer statistics.

    Returns a dict with keys:
    ``head``, ``num_slots``, ``slot_size``, ``msg_count``,
    ``reader_count``, ``closed``.
    """
    hdr = get_header(shm)
    return {
        "head": int(hdr[IDX_HEAD]),
        "num_slots": int(hdr[IDX_NUM_SLOTS]),
        "slot_size": int(hdr[IDX_SLOT_SIZE]),
        "msg_count": int(hdr[IDX_MSG_COUNT]),
        "reader_count": int(hdr[IDX_READER_COUNT]),
        "closed": bool(hdr[IDX_CLOSED]),
    }
