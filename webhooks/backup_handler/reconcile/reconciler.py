"""
Snapshot reconciler.

Given a webhook report and the backups already recorded for the same
environment, decides:
    - to_retire: recorded backups the report no longer mentions, they were
      pruned upstream and must be deleted from the API
    - to_emit: reported snapshots of this environment that the API does
      not know yet, one snapshot:finished event each

The backup operator re-sends the full snapshot list on every run, so most
reports are almost entirely known snapshots. Dropping those is what keeps
consumers from seeing the same backup over and over.

Invariants:
    - A snapshot whose hostname does not match the environment is ignored
      for emission, but its ID still counts as present for retirement
    - Each ID appears at most once in to_retire and at most once in to_emit
    - Output follows input order (authoritative order for to_retire,
      report order for to_emit) so logs are deterministic
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from ..models import AuthoritativeBackupRecord, BackupReport, SnapshotEntry
from .matcher import matches


@dataclass
class ReconcileResult:
    """Outcome of reconciling one report.

    Attributes:
        to_retire: Backup IDs to delete from the API
        to_emit: Snapshots to publish as new
        ignored: Snapshots dropped because they belong to another environment
    """

    to_retire: list[str] = field(default_factory=list)
    to_emit: list[SnapshotEntry] = field(default_factory=list)
    ignored: list[SnapshotEntry] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.to_retire and not self.to_emit


def diff(
    report: BackupReport,
    authoritative: Iterable[AuthoritativeBackupRecord],
) -> ReconcileResult:
    """Compute retirements and emissions for a report.

    Args:
        report: Decoded webhook report
        authoritative: Backups currently recorded for report.name

    Returns:
        ReconcileResult with the IDs to retire and the snapshots to emit
    """
    result = ReconcileResult()
    reported_ids = report.snapshot_ids

    known_ids: set[str] = set()
    for record in authoritative:
        if record.backup_id in known_ids:
            continue
        known_ids.add(record.backup_id)
        if record.backup_id not in reported_ids:
            result.to_retire.append(record.backup_id)

    emitted_ids: set[str] = set()
    for snapshot in report.snapshots:
        if not matches(report.name, snapshot.hostname):
            result.ignored.append(snapshot)
            continue
        if snapshot.id in known_ids or snapshot.id in emitted_ids:
            continue
        emitted_ids.add(snapshot.id)
        result.to_emit.append(snapshot)

    return result
