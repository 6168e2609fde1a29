"""
Custom exceptions for the shapes_interop package.

All exceptions inherit from ShapesError so callers can catch
everything with a single except clause if needed.
"""


class ShapesError(Exception):
    """Base exception for all shapes_interop errors."""


class ShapesConfigError(ShapesError):
    """Raised for unusable configuration: an unsupported QoS policy, a
    malformed QoS value, or a broken logging configuration file.

    Example::

        try:
            qos = qos_from_options(partition="A")
        except ShapesConfigError as e:
            print(f"Cannot start: {e}")
    """


class ShapesConnectionError(ShapesError):
    """Raised when a topic segment cannot be created or attached."""


class ShapesSerializationError(ShapesError):
    """Raised when a sample cannot be encoded or decoded."""


class WriteError(ShapesError):
    """Raised when a DataWriter fails to publish a sample.

    The publisher treats this as fatal: a shapes test run with a broken
    write path has nothing left to measure.
    """


class ReadError(ShapesError):
    """Raised when a DataReader fails to take a sample.

    This is distinct from "no data available", which is reported by
    returning ``None``.  The failed sample has already been consumed,
    so the caller may keep taking.
    """


class ShapesTimeoutError(ShapesError):
    """Raised when a cross-process lock cannot be acquired in time."""
