"""
DataWriter: publishes one shape instance on a topic.

The writer creates the segment ``shapes_d<domain>_<topic>_<key>`` and
writes each sample into its ring buffer, never blocking: readers that
fall behind skip stale samples.

Usage::

    writer = DataWriter(topic, key="BLUE")
    writer.write(Shape("BLUE", 10, 20, 21))
    writer.close()          # disposes the instance and retires the segment
"""

import time
import atexit
import logging
from multiprocessing import shared_memory

from ..core import create_segment, close_segment, created_here, open_segment, untrack
from ..buffer import write_message, mark_closed, reader_count, get_stats, writer_id
from ..exceptions import ShapesConnectionError, ShapesSerializationError, WriteError
from ..qos import Durability, QosPolicies
from ..serialize import encode_sample
from ..shape import Shape, Value, Withdrawn
from ..status import OfferedDeadlineMissed, PublicationMatched, StatusChannel
from ..utils import writer_segment_name

logger = logging.getLogger("shapes.writer")

_DEFAULT_NUM_SLOTS = 64     # KEEP_ALL ring depth
_DEFAULT_SLOT_SIZE = 256    # bytes per slot (payload + 4-byte size prefix)


def ring_depth(qos: QosPolicies) -> int:
    """Number of ring slots for a writer with *qos*.

    KEEP_LAST(d) retains ``d`` samples, which needs ``d + 1`` slots.
    """
    if qos.history.keep_all:
        return _DEFAULT_NUM_SLOTS
    return max(qos.history.depth, 1) + 1


class DataWriter:
    """Writes samples of one instance to a shared-memory topic.

    Args:
        topic:         The topic to publish on.
        key:           Instance key (the shape color).
        qos:           Writer QoS; defaults to the topic's.
        slot_size:     Max bytes per encoded sample.
        serialization: ``"msgpack"`` (default) or ``"pickle"``.
        clock:         Monotonic time source, in seconds.
    """

    def __init__(
        self,
        topic,
        key: str,
        qos: QosPolicies | None = None,
        *,
        slot_size: int = _DEFAULT_SLOT_SIZE,
        serialization: str = "msgpack",
        clock=time.monotonic,
    ):
        self._topic = topic
        self._key = key
        self._qos = qos or topic.qos
        self._serialization = serialization
        self._clock = clock
        self._shm_name = writer_segment_name(topic.domain_id, topic.name, key)
        self._shm: shared_memory.SharedMemory | None = create_segment(
            self._shm_name, ring_depth(self._qos), slot_size
        )
        self._writer_id = writer_id(self._shm)
        if self._qos.durability is Durability.PERSISTENT:
            untrack(self._shm)

        self._status = StatusChannel(self._refresh_status)
        self._matched = 0
        self._matched_total = 0
        self._deadline_total = 0
        self._last_write = clock()

        atexit.register(self._atexit_close)
        logger.info(
            "DataWriter('%s', key=%r) ready on segment '%s'",
            topic.name,
            key,
            self._shm_name,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def key(self) -> str:
        return self._key

    def write(self, shape: Shape) -> int:
        """Publish *shape*.

        Returns:
            The sequence number of the written sample.

        Raises:
            WriteError: The writer is closed, *shape* belongs to another
                instance, or the sample cannot be encoded or stored.
        """
        if shape.color != self._key:
            raise WriteError(
                f"Writer for instance {self._key!r} cannot write {shape.color!r}"
            )
        seq = self._write(Value(shape))
        self._last_write = self._clock()
        return seq

    def dispose(self) -> int:
        """Announce that this writer's instance no longer exists."""
        return self._write(Withdrawn(self._key))

    def as_status_evented(self) -> StatusChannel:
        """Return the readiness source for this writer's status events."""
        return self._status

    def try_recv_status(self):
        return self._status.try_recv_status()

    def stats(self) -> dict:
        if self._shm is None:
            raise WriteError(f"DataWriter for {self._key!r} is closed")
        return get_stats(self._shm)

    def close(self) -> None:
        """Dispose the instance and release the segment.

        The segment is unlinked unless durability is PERSISTENT, in
        which case late-joining readers can still read its history.
        """
        if self._shm is None:
            return
        try:
            self.dispose()
        except WriteError as exc:
            logger.warning("Could not dispose %r on close: %s", self._key, exc)
        mark_closed(self._shm)
        persistent = self._qos.durability is Durability.PERSISTENT
        named = self._still_named()
        if not named:
            logger.warning(
                "Segment '%s' no longer belongs to this writer; not unlinking it",
                self._shm_name,
            )
            if not persistent and created_here(self._shm_name) == self._writer_id:
                untrack(self._shm)
        close_segment(self._shm, destroy=named and not persistent)
        self._shm = None
        logger.info("DataWriter('%s', key=%r) closed", self._topic.name, self._key)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "DataWriter":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _write(self, sample) -> int:
        if self._shm is None:
            raise WriteError(f"DataWriter for {self._key!r} is closed")
        try:
            payload = encode_sample(sample, method=self._serialization)
            return write_message(self._shm, payload)
        except (ShapesSerializationError, ValueError) as exc:
            raise WriteError(f"Write of {sample!r} failed: {exc}") from exc

    def _still_named(self) -> bool:
        """Return ``True`` if the segment name still leads to this writer."""
        try:
            current = open_segment(self._shm_name)
        except ShapesConnectionError:
            return False
        if current is None:
            return False
        try:
            return writer_id(current) == self._writer_id
        finally:
            close_segment(current)

    def _refresh_status(self) -> None:
        if self._shm is None:
            return

        current = reader_count(self._shm)
        if current != self._matched:
            change = current - self._matched
            self._matched_total += max(change, 0)
            self._matched = current
            self._status.push(
                PublicationMatched(
                    total_count=self._matched_total,
                    total_count_change=max(change, 0),
                    current_count=current,
                    current_count_change=change,
                )
            )

        deadline = self._qos.deadline
        if deadline is not None:
            now = self._clock()
            if now - self._last_write >= deadline:
                self._deadline_total += 1
                self._last_write = now  # one report per missed period
                self._status.push(
                    OfferedDeadlineMissed(
                        total_count=self._deadline_total,
                        total_count_change=1,
                        last_instance_key=self._key,
                    )
                )

    def _atexit_close(self) -> None:
        if self._shm is not None:
            self.close()

    def __repr__(self) -> str:
        return f"DataWriter(topic={self._topic.name!r}, key={self._key!r})"
