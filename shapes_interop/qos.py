"""
QoS policies for shapes_interop endpoints.

A :class:`QosPolicies` value is built once from the command line and
handed unchanged to the topic, writer and reader.  Policies the shared
memory transport cannot honour are rejected up front; they are never
silently ignored.
"""

import enum
import logging
from dataclasses import dataclass, field

from .exceptions import ShapesConfigError

logger = logging.getLogger("shapes.qos")


class Reliability(enum.Enum):
    BEST_EFFORT = "best_effort"
    RELIABLE = "reliable"


class Durability(enum.IntEnum):
    """Ordered from weakest to strongest."""

    VOLATILE = 0
    TRANSIENT_LOCAL = 1
    TRANSIENT = 2
    PERSISTENT = 3


DURABILITY_CODES = {
    "v": Durability.VOLATILE,
    "l": Durability.TRANSIENT_LOCAL,
    "t": Durability.TRANSIENT,
    "p": Durability.PERSISTENT,
}


@dataclass(frozen=True)
class History:
    """KEEP_LAST(depth) when *depth* is set, KEEP_ALL otherwise."""

    depth: int | None = None

    @property
    def keep_all(self) -> bool:
        return self.depth is None


@dataclass(frozen=True)
class QosPolicies:
    reliability: Reliability = Reliability.BEST_EFFORT
    durability: Durability = Durability.VOLATILE
    history: History = field(default_factory=History)
    deadline: float | None = None  # seconds


def _parse_history(depth: str | None) -> History:
    if depth is None:
        return History()
    try:
        d = int(depth)
    except ValueError:
        logger.warning("History depth %r is not an integer, using KEEP_ALL", depth)
        return History()
    return History() if d < 0 else History(depth=d)


def _parse_deadline(deadline: str | None) -> float | None:
    if deadline is None:
        return None
    try:
        value = float(deadline)
    except ValueError as exc:
        raise ShapesConfigError(
            f"Expected numeric value for deadline, got {deadline!r}"
        ) from exc
    if value <= 0:
        raise ShapesConfigError(f"Deadline must be positive, got {value}")
    return value


def qos_from_options(
    *,
    reliable: bool = False,
    durability: str | None = None,
    history_depth: str | None = None,
    deadline: str | None = None,
    partition: str | None = None,
    time_based_filter: str | None = None,
    ownership_strength: str | None = None,
) -> QosPolicies:
    """Build the immutable QoS configuration from raw option values.

    Args:
        reliable:           RELIABLE when true, BEST_EFFORT otherwise.
        durability:         One of ``"v"``, ``"l"``, ``"t"``, ``"p"``
                            (``None`` = VOLATILE).
        history_depth:      KEEP_LAST depth; negative or non-numeric
                            means KEEP_ALL.
        deadline:           Deadline period in seconds.
        partition:          Not supported.
        time_based_filter:  Not supported.
        ownership_strength: Not supported.

    Raises:
        ShapesConfigError: An unsupported policy was requested or a
            value is malformed.

    Example::

        qos = qos_from_options(reliable=True, durability="l", history_depth="5")
    """
    unsupported = (
        ("Partition", partition),
        ("Time Based Filter", time_based_filter),
        ("Ownership Strength", ownership_strength),
    )
    for policy, value in unsupported:
        if value is not None:
            raise ShapesConfigError(f"QoS policy {policy} is not yet implemented.")

    if durability is not None and durability not in DURABILITY_CODES:
        raise ShapesConfigError(f"Unknown durability code {durability!r}")

    qos = QosPolicies(
        reliability=Reliability.RELIABLE if reliable else Reliability.BEST_EFFORT,
        durability=DURABILITY_CODES.get(durability, Durability.VOLATILE),
        history=_parse_history(history_depth),
        deadline=_parse_deadline(deadline),
    )
    logger.debug("QoS: %s", qos)
    return qos
