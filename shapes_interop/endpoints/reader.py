"""
DataReader: takes shape samples from every writer of a topic.

Writers are discovered by segment name.  A reader with a content filter
attaches only to the writer of that instance; otherwise it scans the
segment directory for the topic's prefix every ``rescan_interval``
seconds.  Each attached writer gets a private read cursor, so readers
never coordinate with each other or with the writer.

Usage::

    reader = DataReader(topic)
    while (sample := reader.take_next_sample()) is not None:
        print(sample)
"""

import time
import atexit
import logging
from dataclasses import dataclass
from multiprocessing import shared_memory

from ..core import open_segment, close_segment
from ..buffer import (
    add_reader,
    current_sequence,
    is_closed,
    oldest_sequence,
    read_message_at,
    writer_id,
)
from ..exceptions import (
    ReadError,
    ShapesConnectionError,
    ShapesSerializationError,
    ShapesTimeoutError,
)
from ..qos import Durability, QosPolicies, Reliability
from ..serialize import decode_sample
from ..shape import Value, Withdrawn
from ..status import (
    RequestedDeadlineMissed,
    SampleLost,
    StatusChannel,
    SubscriptionMatched,
)
from ..sync import FileLock
from ..utils import list_segments, topic_prefix, writer_segment_name

logger = logging.getLogger("shapes.reader")

_RESCAN_INTERVAL = 0.5   # seconds between writer discovery sweeps
_LOCK_TIMEOUT = 1.0


@dataclass
class _Attachment:
    name: str
    shm: shared_memory.SharedMemory
    writer_id: int
    seq: int


class DataReader:
    """Reads samples of a topic from all matching writers.

    Args:
        topic:           The topic to subscribe to.
        qos:             Reader QoS; defaults to the topic's.
        content_filter:  Only deliver the instance with this key.
        serialization:   Must match the writers' serialization method.
        rescan_interval: Seconds between discovery sweeps.
        clock:           Monotonic time source, in seconds.
    """

    def __init__(
        self,
        topic,
        qos: QosPolicies | None = None,
        *,
        content_filter: str | None = None,
        serialization: str = "msgpack",
        rescan_interval: float = _RESCAN_INTERVAL,
        clock=time.monotonic,
    ):
        self._topic = topic
        self._qos = qos or topic.qos
        self._filter = content_filter
        self._serialization = serialization
        self._rescan_interval = rescan_interval
        self._clock = clock

        self._attachments: dict[str, _Attachment] = {}
        self._finished: set[tuple[str, int]] = set()
        self._next_scan: float | None = None
        self._rr = 0

        self._status = StatusChannel(self._refresh_status)
        self._matched_total = 0
        self._lost_total = 0
        self._deadline_total = 0
        self._last_seen: dict[str, float] = {}

        atexit.register(self._atexit_close)
        logger.info(
            "DataReader('%s') created, filter=%r", topic.name, content_filter
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def matched_writers(self) -> list[str]:
        return list(self._attachments)

    def poll_ready(self) -> bool:
        """Return ``True`` if a sample can be taken without waiting."""
        self._discover()
        ready = False
        for att in list(self._attachments.values()):
            if current_sequence(att.shm) > att.seq:
                ready = True
            elif is_closed(att.shm):
                self._detach(att, writer_gone=True)
        return ready

    def take_next_sample(self) -> Value | Withdrawn | None:
        """Take the next available sample from any matched writer.

        Returns:
            A :class:`Value` or :class:`Withdrawn` sample, or ``None`` if
            no sample is currently available.

        Raises:
            ReadError: A sample was consumed but could not be decoded.
        """
        atts = list(self._attachments.values())
        for i in range(len(atts)):
            att = atts[(self._rr + i) % len(atts)]
            while True:
                result = read_message_at(att.shm, att.seq)
                if result is None:
                    break
                att.seq = result.next_seq
                if result.lost:
                    self._report_lost(result.lost)
                try:
                    sample = decode_sample(result.payload, method=self._serialization)
                except ShapesSerializationError as exc:
                    raise ReadError(f"Bad sample from '{att.name}': {exc}") from exc
                if self._accept(sample):
                    self._rr = (self._rr + i + 1) % len(atts)
                    return sample
        return None

    def as_status_evented(self) -> StatusChannel:
        """Return the readiness source for this reader's status events."""
        return self._status

    def try_recv_status(self):
        return self._status.try_recv_status()

    def close(self) -> None:
        """Detach from every matched writer."""
        for att in list(self._attachments.values()):
            self._detach(att, writer_gone=False, report=False)
        logger.info("DataReader('%s') closed", self._topic.name)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "DataReader":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def _candidates(self) -> list[str]:
        domain, name = self._topic.domain_id, self._topic.name
        if self._filter is not None:
            return [writer_segment_name(domain, name, self._filter)]
        return list_segments(topic_prefix(domain, name))

    def _discover(self) -> None:
        now = self._clock()
        if self._next_scan is not None and now < self._next_scan:
            return
        self._next_scan = now + self._rescan_interval

        for name in self._candidates():
            if name in self._attachments:
                continue
            try:
                shm = open_segment(name)
            except ShapesConnectionError as exc:
                logger.warning("Ignoring segment '%s': %s", name, exc)
                continue
            if shm is None:
                continue
            self._attach(name, shm)

    def _attach(self, name: str, shm: shared_memory.SharedMemory) -> None:
        wid = writer_id(shm)
        late_for_history = self._qos.durability < Durability.PERSISTENT
        if (name, wid) in self._finished or (is_closed(shm) and late_for_history):
            close_segment(shm)
            return

        if self._qos.durability is Durability.VOLATILE:
            seq = current_sequence(shm)
        else:
            seq = oldest_sequence(shm, limit=self._qos.history.depth)

        try:
            with FileLock(name, timeout=_LOCK_TIMEOUT):
                add_reader(shm, +1)
        except ShapesTimeoutError as exc:
            logger.warning("Reader count for '%s' not updated: %s", name, exc)

        self._attachments[name] = _Attachment(name, shm, wid, seq)
        self._matched_total += 1
        self._status.push(
            SubscriptionMatched(
                total_count=self._matched_total,
                total_count_change=1,
                current_count=len(self._attachments),
                current_count_change=1,
                writer=name,
            )
        )
        logger.info("Matched writer '%s' starting at seq %d", name, seq)

    def _detach(self, att: _Attachment, *, writer_gone: bool, report: bool = True) -> None:
        del self._attachments[att.name]
        if writer_gone:
            self._finished.add((att.name, att.writer_id))
        elif not is_closed(att.shm):
            try:
                with FileLock(att.name, timeout=_LOCK_TIMEOUT):
                    add_reader(att.shm, -1)
            except ShapesTimeoutError as exc:
                logger.warning("Reader count for '%s' not updated: %s", att.name, exc)
        close_segment(att.shm)
        if report:
            self._status.push(
                SubscriptionMatched(
                    total_count=self._matched_total,
                    total_count_change=0,
                    current_count=len(self._attachments),
                    current_count_change=-1,
                    writer=att.name,
                )
            )
        logger.info("Unmatched writer '%s'", att.name)

    # ------------------------------------------------------------------
    # Sample bookkeeping
    # ------------------------------------------------------------------

    def _accept(self, sample) -> bool:
        key = sample.shape.key if isinstance(sample, Value) else sample.key
        if self._filter is not None and key != self._filter:
            return False
        if isinstance(sample, Withdrawn):
            self._last_seen.pop(key, None)
        else:
            self._last_seen[key] = self._clock()
        return True

    def _report_lost(self, lost: int) -> None:
        logger.debug("Lapped by writer, %d samples lost", lost)
        if self._qos.reliability is not Reliability.RELIABLE:
            return
        self._lost_total += lost
        self._status.push(SampleLost(total_count=self._lost_total, total_count_change=lost))

    def _refresh_status(self) -> None:
        deadline = self._qos.deadline
        if deadline is None:
            return
        now = self._clock()
        for key, seen in self._last_seen.items():
            if now - seen >= deadline:
                self._deadline_total += 1
                self._last_seen[key] = now
                self._status.push(
                    RequestedDeadlineMissed(
                        total_count=self._deadline_total,
                        total_count_change=1,
                        last_instance_key=key,
                    )
                )

    def _atexit_close(self) -> None:
        if self._attachments:
            self.close()

    def __repr__(self) -> str:
        return f"DataReader(topic={self._topic.name!r}, writers={len(self._attachments)})"
