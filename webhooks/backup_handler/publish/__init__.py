"""
Event publisher boundary.

This module provides a pluggable publisher interface supporting:
- Kafka/Redpanda (production)
- In-memory (for testing)

Events handed to a publisher are the only output of the service.
Delivery after the broker acknowledges is the broker's responsibility.
"""

from .base import (
    EventPublisher,
    PublisherConnectionError,
    PublishError,
    create_publisher,
)
from .kafka import KafkaEventPublisher
from .memory import InMemoryEventPublisher

__all__ = [
    # Protocol and errors
    "EventPublisher",
    "PublishError",
    "PublisherConnectionError",
    # Factory
    "create_publisher",
    # Implementations
    "KafkaEventPublisher",
    "InMemoryEventPublisher",
]
