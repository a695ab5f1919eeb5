"""
In-memory event publisher for testing.

This module provides a simple in-memory publisher for:
- Unit and integration tests
- Local development without a broker

Invariants:
    - All data is lost on process exit
    - Events are kept in publish order
    - Safe to use from multiple coroutines

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with EventPublisher protocol
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..models import OutboundEvent
from .base import PublisherConnectionError, PublishError

logger = logging.getLogger(__name__)


class InMemoryEventPublisher:
    """In-memory implementation of EventPublisher.

    Example:
        >>> publisher = InMemoryEventPublisher()
        >>> await publisher.connect()
        >>> await publisher.publish(event)
        >>> publisher.events
        [OutboundEvent(...)]
    """

    def __init__(self) -> None:
        self._connected = False
        self._lock = asyncio.Lock()
        self.events: list[OutboundEvent] = []
        self.topology_declarations = 0
        self.fail_next = 0

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryEventPublisher connected")

    async def declare_topology(self) -> None:
        self.topology_declarations += 1

    async def publish(self, event: OutboundEvent) -> None:
        """Store an event.

        Raises:
            PublisherConnectionError: If not connected
            PublishError: While fail_next is positive (one failure per call)
        """
        if not self._connected:
            raise PublisherConnectionError("Not connected", event_uuid=event.uuid)

        async with self._lock:
            if self.fail_next > 0:
                self.fail_next -= 1
                raise PublishError("Simulated publish failure", event_uuid=event.uuid)
            self.events.append(event)

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self.events.clear()
        logger.debug("InMemoryEventPublisher closed")

    async def health_check(self) -> bool:
        return self._connected

    # Testing helpers

    def payloads(self) -> list[dict[str, Any]]:
        """Wire payloads of all published events."""
        return [e.to_dict() for e in self.events]

    def events_of_kind(self, kind: str) -> list[OutboundEvent]:
        return [e for e in self.events if e.event == kind]
