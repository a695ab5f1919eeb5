"""
Base protocol and errors for the event publisher.

The publisher is the hand-off point to the message broker. Once publish()
returns, delivery is the broker's concern. When publish() raises, the
event is lost: callers log it and move on, the next webhook from the
backup operator re-derives the same event.

Invariants:
    - declare_topology() is idempotent, redeclaring existing topology is a no-op
    - publish() returns only after the broker acknowledged the event
    - One publisher instance is shared by all in-flight requests

How to change safely:
    - Protocol changes require updating all implementations
    - Changing the wire payload is a contract change for every consumer
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..errors import BackupHandlerError
from ..models import OutboundEvent

if TYPE_CHECKING:
    from ..config import ServerConfig


class PublishError(BackupHandlerError):
    """Publishing an event failed."""

    def __init__(self, message: str, event_uuid: str | None = None) -> None:
        super().__init__(message, details={"event_uuid": event_uuid})
        self.event_uuid = event_uuid


class PublisherConnectionError(PublishError):
    """Connection to the broker failed."""

    pass


@runtime_checkable
class EventPublisher(Protocol):
    """Protocol for event publisher backends.

    Example:
        >>> publisher = KafkaEventPublisher(config)
        >>> await publisher.connect()
        >>> await publisher.declare_topology()
        >>> await publisher.publish(OutboundEvent.restore_finished(report))
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the broker.

        Raises:
            PublisherConnectionError: If connection fails
        """
        ...

    @abstractmethod
    async def declare_topology(self) -> None:
        """Declare the durable destination events are published to.

        Raises:
            PublisherConnectionError: If the broker rejects the declaration
        """
        ...

    @abstractmethod
    async def publish(self, event: OutboundEvent) -> None:
        """Publish one event and wait for the broker acknowledgment.

        Args:
            event: Envelope to publish

        Raises:
            PublishError: If the event could not be handed to the broker
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Flush pending sends and close the broker connection."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Whether the broker connection is usable."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected to the broker."""
        ...


def create_publisher(config: "ServerConfig") -> EventPublisher:
    """Factory function to create an event publisher from configuration.

    Args:
        config: Server configuration

    Returns:
        Appropriate EventPublisher implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import PublisherBackend
    from .kafka import KafkaEventPublisher
    from .memory import InMemoryEventPublisher

    if config.publisher_backend == PublisherBackend.KAFKA:
        return KafkaEventPublisher(config.kafka)
    elif config.publisher_backend == PublisherBackend.MEMORY:
        return InMemoryEventPublisher()
    else:
        raise ValueError(f"Unsupported publisher backend: {config.publisher_backend}")
