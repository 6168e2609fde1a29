"""
Communication status events reported by DataWriters and DataReaders.

Each endpoint owns a :class:`StatusChannel`.  The channel is itself a
readiness source: register ``endpoint.as_status_evented()`` with a
:class:`~shapes_interop.poll.Poller` and drain it with
:meth:`StatusChannel.try_recv_status` when it fires.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger("shapes.status")


# ── Writer side ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PublicationMatched:
    total_count: int
    total_count_change: int
    current_count: int
    current_count_change: int


@dataclass(frozen=True)
class OfferedDeadlineMissed:
    total_count: int
    total_count_change: int
    last_instance_key: str


# ── Reader side ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SubscriptionMatched:
    total_count: int
    total_count_change: int
    current_count: int
    current_count_change: int
    writer: str


@dataclass(frozen=True)
class RequestedDeadlineMissed:
    total_count: int
    total_count_change: int
    last_instance_key: str


@dataclass(frozen=True)
class SampleLost:
    total_count: int
    total_count_change: int


StatusEvent = (
    PublicationMatched
    | OfferedDeadlineMissed
    | SubscriptionMatched
    | RequestedDeadlineMissed
    | SampleLost
)


class StatusChannel:
    """FIFO of pending status events for one endpoint.

    Args:
        refresh: Called before every readiness check and receive so the
                 owning endpoint can detect time- or peer-driven changes
                 (deadlines, matched readers) and :meth:`push` them.
    """

    def __init__(self, refresh: Callable[[], None] | None = None):
        self._pending: deque = deque()
        self._refresh = refresh

    def push(self, event) -> None:
        logger.debug("Status event queued: %s", event)
        self._pending.append(event)

    def poll_ready(self) -> bool:
        if self._refresh is not None:
            self._refresh()
        return bool(self._pending)

    def try_recv_status(self):
        """Return the oldest pending event, or ``None`` if there is none."""
        if self._refresh is not None:
            self._refresh()
        if not self._pending:
            return None
        return self._pending.popleft()

    def __len__(self) -> int:
        return len(self._pending)
