"""
Backup Handler - webhook ingress for restic backup and restore events.

This package receives webhooks from the backup operator, reconciles the
reported snapshot set against the backups already recorded in the Lagoon
API, and forwards only net-new events to a durable message topic.

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │   Backup    │────▶│    HTTP     │────▶│   Dispatcher    │
    │  operator   │     │   ingress   │     │                 │
    └─────────────┘     └─────────────┘     └───┬─────────┬───┘
                                                │         │
                              query / delete    │         │  publish
                                                ▼         ▼
                                   ┌──────────────┐   ┌──────────────┐
                                   │  Lagoon API  │   │ Kafka topic  │
                                   │  (GraphQL)   │   │  (durable)   │
                                   └──────────────┘   └──────────────┘

Invariants:
    - The Lagoon API is the only memory of which snapshots were announced
    - A snapshot is emitted only when its ID is absent from the API
    - Retirements happen before emissions within one request
    - Snapshots from other environments are dropped, never retired

How to change safely:
    - Keep the reconciler pure; put I/O in the dispatcher or its collaborators
    - Any change to the emitted envelope is a contract change for consumers
"""

from ._version import __version__

__all__ = ["__version__"]
