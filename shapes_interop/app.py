"""
The shapes control loop and its two roles.

One thread, one wait: the :class:`ControlLoop` blocks in
:meth:`Poller.poll` until the stop signal, the reader, or the endpoint's
status channel is ready, dispatches every ready token, and then lets
the role do its per-wakeup work.

* :class:`PublisherRole` moves its shape and writes it once per wakeup.
  The loop waits at most :data:`PUBLISH_INTERVAL`, so the shape keeps
  moving even when nothing else happens.
* :class:`SubscriberRole` waits indefinitely and drains the reader
  whenever it reports data.
"""

import logging

import click
import numpy as np

from .endpoints import DomainParticipant, Topic
from .exceptions import ReadError, ShapesError
from .poll import Poller, StopSignal, Token
from .shape import DEFAULT_SHAPESIZE, Shape, Value, Withdrawn, move_shape, random_velocity

logger = logging.getLogger("shapes.app")

PUBLISH_INTERVAL = 0.2  # seconds


def format_shape(topic_name: str, shape: Shape) -> str:
    return f"{topic_name:<10.10} {shape.color:<10.10} {shape.x:>3} {shape.y:>3} [{shape.shapesize}]"


class PublisherRole:
    """Moves one shape and writes it on every loop wakeup."""

    timeout = PUBLISH_INTERVAL
    reads = False
    status_label = "DataWriter status"

    def __init__(self, writer, shape: Shape, xv: int, yv: int):
        self._writer = writer
        self.shape = shape
        self.xv = xv
        self.yv = yv

    def tick(self) -> Shape:
        """Advance the shape one step and publish it.

        Raises:
            WriteError: The write failed.  Not caught here: a publisher
                that cannot publish has nothing left to test.
        """
        self.shape, self.xv, self.yv = move_shape(self.shape, self.xv, self.yv)
        logger.debug("Writing shape color %s", self.shape.color)
        self._writer.write(self.shape)
        return self.shape

    def after_wakeup(self) -> None:
        self.tick()

    def try_recv_status(self):
        return self._writer.try_recv_status()


class SubscriberRole:
    """Prints every sample the reader delivers."""

    timeout = None
    reads = True
    status_label = "DataReader status"

    def __init__(self, reader, topic_name: str):
        self._reader = reader
        self._topic_name = topic_name

    def drain(self) -> int:
        """Take samples until the reader reports none available.

        A sample that fails to decode is reported and skipped; it does
        not end the drain.

        Returns:
            The number of samples taken, including failed ones.
        """
        taken = 0
        while True:
            logger.debug("DataReader triggered")
            try:
                sample = self._reader.take_next_sample()
            except ReadError as exc:
                taken += 1
                logger.warning("Take failed: %s", exc)
                click.echo(f"DataReader error {exc}")
                continue
            if sample is None:
                return taken
            taken += 1
            if isinstance(sample, Value):
                click.echo(format_shape(self._topic_name, sample.shape))
            elif isinstance(sample, Withdrawn):
                click.echo(f'Disposed key "{sample.key}"')

    def after_wakeup(self) -> None:
        pass

    def try_recv_status(self):
        return self._reader.try_recv_status()


class ControlLoop:
    """Readiness-driven loop serving exactly one role.

    Args:
        poller: Poller with the stop signal and the role's sources
                registered.
        stop:   The stop signal registered as ``Token.STOP_PROGRAM``.
        role:   A :class:`PublisherRole` or :class:`SubscriberRole`.
    """

    def __init__(self, poller: Poller, stop: StopSignal, role):
        self._poller = poller
        self._stop = stop
        self._role = role

    def step(self) -> bool:
        """Wait for one wakeup and handle it.

        Returns:
            ``True`` once the stop signal has been consumed.
        """
        for token in self._poller.poll(self._role.timeout):
            if token == Token.STOP_PROGRAM:
                if self._stop.try_recv():
                    click.echo("Done.")
                    return True
                logger.debug("Stop source woke us but held no signal")
            elif token == Token.STATUS_READY:
                self.drain_status()
            elif token == Token.READER_READY and self._role.reads:
                self._role.drain()
            else:
                click.echo(f"Polled event is {token!r}. Unexpected.")

        self._role.after_wakeup()
        return False

    def drain_status(self) -> int:
        count = 0
        while True:
            try:
                status = self._role.try_recv_status()
            except ShapesError as exc:
                logger.warning("Status poll failed: %s", exc)
                click.echo(f"{self._role.status_label} error {exc}")
                return count
            if status is None:
                return count
            count += 1
            click.echo(f"{self._role.status_label}: {status}")

    def run(self) -> int:
        """Loop until stopped.  Returns the process exit code."""
        while not self.step():
            pass
        return 0


# ── Role setup ────────────────────────────────────────────────────────────────

def run_publisher(
    participant: DomainParticipant,
    topic: Topic,
    color: str,
    stop: StopSignal,
    *,
    rng: np.random.Generator | None = None,
) -> int:
    """Publish a bouncing shape of *color* until *stop* fires."""
    logger.debug("Publisher")
    poller = Poller()
    poller.register(stop, Token.STOP_PROGRAM)
    with participant.create_datawriter(topic, key=color) as writer:
        poller.register(writer.as_status_evented(), Token.STATUS_READY)
        xv, yv = random_velocity(rng)
        shape = Shape(color=color, x=0, y=0, shapesize=DEFAULT_SHAPESIZE)
        role = PublisherRole(writer, shape, xv, yv)
        return ControlLoop(poller, stop, role).run()


def run_subscriber(
    participant: DomainParticipant,
    topic: Topic,
    stop: StopSignal,
    *,
    content_filter: str | None = None,
) -> int:
    """Print every sample on *topic* until *stop* fires."""
    logger.debug("Subscriber")
    poller = Poller()
    poller.register(stop, Token.STOP_PROGRAM)
    with participant.create_datareader(topic, content_filter=content_filter) as reader:
        poller.register(reader, Token.READER_READY)
        poller.register(reader.as_status_evented(), Token.STATUS_READY)
        logger.debug("Created DataReader")
        role = SubscriberRole(reader, topic.name)
        return ControlLoop(poller, stop, role).run()
