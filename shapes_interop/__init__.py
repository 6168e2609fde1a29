"""
shapes_interop — Shapes Interoperability Test Client
====================================================

Publishes a bouncing shape, or subscribes to and prints shapes, over a
shared-memory publish/subscribe transport.  A single readiness-driven
loop multiplexes Ctrl-C, data arrival and status changes.

Quick start::

    from shapes_interop import DomainParticipant, Shape

    dp = DomainParticipant(0)
    topic = dp.create_topic("Square")

    writer = dp.create_datawriter(topic, key="RED")
    reader = dp.create_datareader(topic)

    reader.poll_ready()                        # discover the writer
    writer.write(Shape("RED", 50, 60, 21))
    sample = reader.take_next_sample()         # Value(shape=Shape(...))
"""

__version__ = "0.2.2"

from .endpoints import DomainParticipant, Topic, DataWriter, DataReader
from .shape import Shape, Value, Withdrawn, move_shape, DA_WIDTH, DA_HEIGHT
from .poll import Poller, StopSignal, Token
from .qos import QosPolicies, Reliability, Durability, History, qos_from_options
from .exceptions import (
    ShapesError,
    ShapesConfigError,
    ShapesConnectionError,
    ShapesSerializationError,
    ShapesTimeoutError,
    WriteError,
    ReadError,
)
from .utils import force_unlink, list_segments

__all__ = [
    # Entities
    "DomainParticipant",
    "Topic",
    "DataWriter",
    "DataReader",
    # Data model
    "Shape",
    "Value",
    "Withdrawn",
    "move_shape",
    "DA_WIDTH",
    "DA_HEIGHT",
    # Loop
    "Poller",
    "StopSignal",
    "Token",
    # QoS
    "QosPolicies",
    "Reliability",
    "Durability",
    "History",
    "qos_from_options",
    # Exceptions
    "ShapesError",
    "ShapesConfigError",
    "ShapesConnectionError",
    "ShapesSerializationError",
    "ShapesTimeoutError",
    "WriteError",
    "ReadError",
    # Utilities
    "force_unlink",
    "list_segments",
]
