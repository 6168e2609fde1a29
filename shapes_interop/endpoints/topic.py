"""
Domain participant and topic for shapes_interop.

The participant is the factory for every other entity.  It holds no
transport state of its own: each DataWriter owns its segment and each
DataReader discovers writers by segment name.
"""

import logging
from dataclasses import dataclass, field

from ..exceptions import ShapesConfigError
from ..qos import QosPolicies
from ..shape import TYPE_NAME
from .reader import DataReader
from .writer import DataWriter

logger = logging.getLogger("shapes.topic")


@dataclass(frozen=True)
class Topic:
    name: str
    type_name: str
    domain_id: int
    qos: QosPolicies = field(default_factory=QosPolicies)


class DomainParticipant:
    """Entry point for creating topics, writers and readers.

    Args:
        domain_id: Writers and readers only match within one domain.

    Example::

        dp = DomainParticipant(0)
        topic = dp.create_topic("Square", qos=qos)
        writer = dp.create_datawriter(topic, key="BLUE")
    """

    def __init__(self, domain_id: int = 0):
        if not 0 <= domain_id <= 0xFFFF:
            raise ValueError(f"domain_id must be in 0..65535, got {domain_id}")
        self.domain_id = domain_id
        logger.debug("DomainParticipant(%d) created", domain_id)

    def create_topic(
        self,
        name: str,
        type_name: str = TYPE_NAME,
        qos: QosPolicies | None = None,
    ) -> Topic:
        if not name:
            raise ShapesConfigError("Topic name must not be empty")
        return Topic(name, type_name, self.domain_id, qos or QosPolicies())

    def create_datawriter(
        self, topic: Topic, key: str, qos: QosPolicies | None = None, **kwargs
    ) -> DataWriter:
        """Create a :class:`~shapes_interop.endpoints.writer.DataWriter`
        publishing instance *key* of *topic*."""
        return DataWriter(topic, key, qos, **kwargs)

    def create_datareader(
        self, topic: Topic, qos: QosPolicies | None = None, **kwargs
    ) -> DataReader:
        """Create a :class:`~shapes_interop.endpoints.reader.DataReader`
        for *topic*."""
        return DataReader(topic, qos, **kwargs)

    def __repr__(self) -> str:
        return f"DomainParticipant(domain_id={self.domain_id})"
