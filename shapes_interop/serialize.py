"""
Wire encoding of shape samples.

Two backends are supported:

* ``msgpack``  – compact and language neutral (default).
* ``pickle``   – built-in; only use between trusted processes.

A sample travels as a flat mapping::

    {"kind": "data",    "color": "BLUE", "x": 10, "y": 20, "shapesize": 21}
    {"kind": "dispose", "color": "BLUE"}
"""

import pickle
import logging

import msgpack

from .exceptions import ShapesSerializationError
from .shape import Shape, Value, Withdrawn

logger = logging.getLogger("shapes.serialize")

METHODS = ("msgpack", "pickle")

_KIND_DATA = "data"
_KIND_DISPOSE = "dispose"


def serialize(obj, method: str = "msgpack") -> bytes:
    """Serialize *obj* to bytes using the chosen *method*.

    Raises:
        ShapesSerializationError: If serialization fails or *method*
            is unknown.
    """
    if method == "msgpack":
        try:
            return msgpack.packb(obj, use_bin_type=True)
        except (TypeError, ValueError, OverflowError) as exc:
            raise ShapesSerializationError(
                f"msgpack serialization failed: {exc}"
            ) from exc

    if method == "pickle":
        try:
            return pickle.dumps(obj, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as exc:
            raise ShapesSerializationError(
                f"pickle serialization failed: {exc}"
            ) from exc

    raise ShapesSerializationError(f"Unknown serialization method: {method!r}")


def deserialize(data: bytes, method: str = "msgpack"):
    """Deserialize *data* back to a Python object.

    Raises:
        ShapesSerializationError: If deserialization fails.
    """
    if method == "msgpack":
        try:
            return msgpack.unpackb(data, raw=False)
        except Exception as exc:
            raise ShapesSerializationError(
                f"msgpack deserialization failed: {exc}"
            ) from exc

    if method == "pickle":
        try:
            return pickle.loads(data)
        except Exception as exc:
            raise ShapesSerializationError(
                f"pickle deserialization failed: {exc}"
            ) from exc

    raise ShapesSerializationError(f"Unknown serialization method: {method!r}")


# ── Sample mapping ────────────────────────────────────────────────────────────

def encode_sample(sample: Value | Withdrawn, method: str = "msgpack") -> bytes:
    """Encode a :class:`Value` or :class:`Withdrawn` sample."""
    if isinstance(sample, Value):
        s = sample.shape
        record = {
            "kind": _KIND_DATA,
            "color": s.color,
            "x": s.x,
            "y": s.y,
            "shapesize": s.shapesize,
        }
    elif isinstance(sample, Withdrawn):
        record = {"kind": _KIND_DISPOSE, "color": sample.key}
    else:
        raise ShapesSerializationError(f"Not a sample: {sample!r}")
    return serialize(record, method=method)


def decode_sample(data: bytes, method: str = "msgpack") -> Value | Withdrawn:
    """Decode bytes produced by :func:`encode_sample`.

    Raises:
        ShapesSerializationError: If *data* is not a well-formed sample.
    """
    record = deserialize(data, method=method)
    if not isinstance(record, dict):
        raise ShapesSerializationError(f"Sample is not a mapping: {record!r}")

    kind = record.get("kind")
    try:
        if kind == _KIND_DATA:
            return Value(
                Shape(
                    color=str(record["color"]),
                    x=int(record["x"]),
                    y=int(record["y"]),
                    shapesize=int(record["shapesize"]),
                )
            )
        if kind == _KIND_DISPOSE:
            return Withdrawn(str(record["color"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ShapesSerializationError(f"Malformed {kind} sample: {exc}") from exc
    raise ShapesSerializationError(f"Unknown sample kind {kind!r}")
