"""
Readiness multiplexing for the shapes control loop.

A :class:`Poller` maps readiness sources to tokens and waits until one
or more of them is ready.  A source is any object with a
``poll_ready() -> bool`` method: DataReaders, status channels and the
:class:`StopSignal` all qualify.

Usage::

    poller = Poller()
    poller.register(stop, Token.STOP_PROGRAM)
    poller.register(reader, Token.READER_READY)

    for token in poller.poll(timeout=0.2):
        ...
"""

import enum
import signal
import logging

from .utils import poll_until

logger = logging.getLogger("shapes.poll")

_POLL_INTERVAL = 0.001  # seconds between readiness sweeps


class Token(enum.IntEnum):
    STOP_PROGRAM = 0
    READER_READY = 1
    STATUS_READY = 2


class Poller:
    """Token registry plus a blocking ``poll``.

    Tokens are assigned once at registration and never removed.  Ready
    tokens are reported in registration order.

    Args:
        poll_interval: Seconds to sleep between sweeps of the sources.
    """

    def __init__(self, poll_interval: float = _POLL_INTERVAL):
        self._sources: list = []
        self._tokens: list = []
        self._poll_interval = poll_interval

    def register(self, source, token) -> None:
        """Associate *source* with *token*.

        Raises:
            ValueError: *token* or *source* is already registered.
        """
        if token in self._tokens:
            raise ValueError(f"Token {token!r} is already registered")
        if any(s is source for s in self._sources):
            raise ValueError(f"Source {source!r} is already registered")
        self._sources.append(source)
        self._tokens.append(token)
        logger.debug("Registered %r as %r", source, token)

    def _ready(self) -> list:
        return [
            token
            for source, token in zip(self._sources, self._tokens)
            if source.poll_ready()
        ]

    def poll(self, timeout: float | None = None) -> list:
        """Wait until at least one source is ready.

        Args:
            timeout: Seconds to wait. ``None`` = block indefinitely.

        Returns:
            The ready tokens in registration order; empty on timeout.
        """
        ready = poll_until(self._ready, timeout=timeout, poll_interval=self._poll_interval)
        return ready or []

    def __len__(self) -> int:
        return len(self._tokens)


class StopSignal:
    """Single-slot, one-shot cancellation channel.

    :meth:`send` may be called from a signal handler; the control loop
    sees the signal as a ready source and consumes it with
    :meth:`try_recv`.
    """

    def __init__(self):
        self._pending = False

    def send(self) -> None:
        self._pending = True

    def poll_ready(self) -> bool:
        return self._pending

    def try_recv(self) -> bool:
        """Consume the signal.  Returns ``False`` if there was none."""
        if not self._pending:
            return False
        self._pending = False
        return True

    def install(self, signums=(signal.SIGINT, signal.SIGTERM)) -> None:
        """Route the given OS signals into this channel."""
        for signum in signums:
            signal.signal(signum, lambda *_: self.send())
        logger.debug("Stop signal installed for %s", signums)
