"""
Webhook dispatcher.

The Dispatcher handles one decoded report end to end:
1. Classifies it as a restore report, a snapshot report, or invalid
2. Restore: publishes a single restore:finished event
3. Snapshot: fetches recorded backups, reconciles, deletes pruned
   records, then publishes one snapshot:finished event per new snapshot

Invariants:
    - No state survives between calls; the backup API is the only memory
    - A failed query stops the request before anything is deleted or published
    - The first failed delete stops the request; nothing is published
    - Deletes always happen before publishes within one request
    - A failed publish loses that event only, its siblings are still published

How to change safely:
    - Keep decision logic in reconcile/, this module only sequences I/O
    - Changing the stop-on-first-delete-error policy changes what consumers
      see after partial API outages
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from ..backups.base import BackupRecordApi, DeleteError, QueryError
from ..models import BackupReport, OutboundEvent
from ..publish.base import EventPublisher, PublishError
from ..reconcile import diff

logger = logging.getLogger(__name__)


class Branch(Enum):
    """How a report was classified."""

    RESTORE = "restore"
    SNAPSHOT = "snapshot"
    INVALID = "invalid"


@dataclass
class DispatchResult:
    """Result of dispatching one report.

    Attributes:
        branch: How the report was classified
        committed: Whether every step of the request succeeded
        reason: Failure reason if not committed
        retired: Backup IDs deleted from the API
        emitted: UUIDs of published events
        lost: UUIDs of events whose publish failed
    """

    branch: Branch
    committed: bool = True
    reason: str | None = None
    retired: list[str] = field(default_factory=list)
    emitted: list[str] = field(default_factory=list)
    lost: list[str] = field(default_factory=list)

    def fail(self, reason: str) -> DispatchResult:
        self.committed = False
        self.reason = reason
        return self


def classify(report: BackupReport) -> Branch:
    """Pick the branch for a report."""
    if report.is_restore:
        return Branch.RESTORE
    if report.snapshots:
        return Branch.SNAPSHOT
    return Branch.INVALID


class Dispatcher:
    """Sequences reconciliation I/O for incoming reports.

    Thread safety:
        Holds only references to its collaborators, so concurrent handle()
        calls from different requests need no coordination.

    Example:
        >>> dispatcher = Dispatcher(backup_api, publisher)
        >>> result = await dispatcher.handle(report)
        >>> result.committed
        True
    """

    def __init__(self, backup_api: BackupRecordApi, publisher: EventPublisher) -> None:
        """Initialize the dispatcher.

        Args:
            backup_api: Authoritative backup record API
            publisher: Event publisher shared by all requests
        """
        self.backup_api = backup_api
        self.publisher = publisher

    async def handle(self, report: BackupReport) -> DispatchResult:
        """Dispatch one report.

        Args:
            report: Decoded webhook report

        Returns:
            DispatchResult describing what was retired and emitted
        """
        branch = classify(report)

        if branch == Branch.RESTORE:
            return await self._handle_restore(report)
        if branch == Branch.SNAPSHOT:
            return await self._handle_snapshots(report)

        logger.warning(
            "Unable to handle webhook: no restore location and no snapshots",
            extra={"environment": report.name},
        )
        return DispatchResult(branch=branch).fail(
            "report has no restore location and no snapshots"
        )

    async def _handle_restore(self, report: BackupReport) -> DispatchResult:
        result = DispatchResult(branch=Branch.RESTORE)
        event = OutboundEvent.restore_finished(report)
        if not await self._publish(event, result):
            return result.fail(f"failed to publish restore event {event.uuid}")
        return result

    async def _handle_snapshots(self, report: BackupReport) -> DispatchResult:
        result = DispatchResult(branch=Branch.SNAPSHOT)

        try:
            recorded = await self.backup_api.query_environment_backups(report.name)
        except QueryError as e:
            logger.error(
                f"Unable to get backups from api: {e}",
                extra={"environment": report.name},
            )
            return result.fail(f"backup query failed: {e}")

        reconciled = diff(report, recorded)

        if reconciled.ignored:
            logger.debug(
                "Ignored snapshots from other environments",
                extra={
                    "environment": report.name,
                    "hostnames": sorted({s.hostname for s in reconciled.ignored}),
                },
            )

        for backup_id in reconciled.to_retire:
            try:
                await self.backup_api.delete_backup(backup_id)
            except DeleteError as e:
                logger.error(
                    f"Unable to delete backup from api: {e}",
                    extra={"environment": report.name, "backup_id": backup_id},
                )
                return result.fail(f"failed to delete backup {backup_id}: {e}")
            result.retired.append(backup_id)
            logger.info(f"Deleted backup {backup_id} for {report.name}")

        for snapshot in reconciled.to_emit:
            await self._publish(OutboundEvent.snapshot_finished(report, snapshot), result)

        if result.lost:
            return result.fail(f"{len(result.lost)} of {len(reconciled.to_emit)} events lost")

        logger.info(
            "Reconciled snapshot report",
            extra={
                "environment": report.name,
                "reported": len(report.snapshots),
                "known": len(recorded),
                "retired": len(result.retired),
                "emitted": len(result.emitted),
            },
        )
        return result

    async def _publish(self, event: OutboundEvent, result: DispatchResult) -> bool:
        try:
            await self.publisher.publish(event)
        except PublishError as e:
            result.lost.append(event.uuid)
            logger.error(
                f"Failed to publish {event.webhook_type}:{event.event}: {e}",
                extra={"environment": event.environment, "event_uuid": event.uuid},
            )
            return False

        result.emitted.append(event.uuid)
        snapshots = event.body.snapshots
        if event.body.is_restore or not snapshots:
            logger.info(
                f"Webhook for {event.webhook_type}:{event.event}, "
                f"ID:{event.body.snapshot_id} added to queue"
            )
        else:
            logger.info(
                f"Webhook for {event.webhook_type}:{event.event}, "
                f"snapshotname {snapshots[0].hostname}, ID:{snapshots[0].id} added to queue"
            )
        return True
