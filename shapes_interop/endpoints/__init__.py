"""shapes_interop.endpoints — participant, topic, writer and reader."""

from .topic import DomainParticipant, Topic
from .writer import DataWriter
from .reader import DataReader

__all__ = [
    "DomainParticipant",
    "Topic",
    "DataWriter",
    "DataReader",
]
