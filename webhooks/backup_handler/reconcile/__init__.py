"""
Reconciliation of reported snapshots against recorded backups.

This module holds the only decision logic of the service:
- matcher: attributes a snapshot hostname to an environment
- reconciler: computes which records to retire and which snapshots to emit

Invariants:
    - Everything here is pure and synchronous, no I/O
    - Snapshot IDs are the only deduplication key
    - Snapshots of other environments are neither emitted nor retired

How to change safely:
    - Any change to the matcher pattern changes which events consumers see
    - Keep diff() total: it must not raise for a decoded report
"""

from .matcher import matches
from .reconciler import ReconcileResult, diff

__all__ = [
    "matches",
    "diff",
    "ReconcileResult",
]
