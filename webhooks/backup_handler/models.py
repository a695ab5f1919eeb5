"""
Data model for backup webhooks and outbound events.

A webhook from the backup operator is decoded into a BackupReport. The
dispatcher turns reports into OutboundEvents, the envelope consumers read
from the event topic.

Wire format of an inbound report:
    {
        "name": "project-main",
        "bucket_name": "baas-project",
        "metrics": {"backup_start_timestamp": 1700000000, ...},
        "snapshots": [
            {"id": "8f1c...", "hostname": "project-main", "time": "...", "paths": [...]}
        ],
        "restore_location": "",
        "snapshot_ID": ""
    }

Wire format of an outbound event:
    {"webhookType": "resticbackup", "event": "snapshot:finished", "uuid": "...", "body": {...}}

Invariants:
    - Snapshot IDs are the only deduplication key
    - Unknown snapshot keys are kept in metadata and re-emitted unchanged
    - A snapshot:finished event body carries exactly one snapshot
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any
from uuid import uuid4

from .errors import DecodeError

WEBHOOK_TYPE = "resticbackup"
EVENT_RESTORE_FINISHED = "restore:finished"
EVENT_SNAPSHOT_FINISHED = "snapshot:finished"


@dataclass(frozen=True)
class SnapshotEntry:
    """One snapshot reported by the backup operator.

    Attributes:
        id: Snapshot identifier, unique per physical snapshot
        hostname: Reporting hostname, used to attribute the snapshot to an environment
        metadata: Every other key of the wire object (time, tree, paths, tags, ...)
    """

    id: str
    hostname: str
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_dict(cls, data: Any) -> SnapshotEntry:
        if not isinstance(data, dict):
            raise DecodeError(f"Snapshot entry must be an object, got {type(data).__name__}")
        snapshot_id = data.get("id")
        if not isinstance(snapshot_id, str) or not snapshot_id:
            raise DecodeError("Snapshot entry is missing a string 'id'")
        hostname = data.get("hostname", "")
        if not isinstance(hostname, str):
            raise DecodeError(f"Snapshot {snapshot_id} has a non-string 'hostname'")
        metadata = {k: v for k, v in data.items() if k not in ("id", "hostname")}
        return cls(id=snapshot_id, hostname=hostname, metadata=metadata)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "hostname": self.hostname, **self.metadata}


@dataclass
class BackupReport:
    """One webhook payload describing backup or restore activity.

    Attributes:
        name: Environment name (the OpenShift/Kubernetes namespace)
        bucket_name: Storage bucket holding the restic repository
        metrics: Aggregate backup metrics, passed through untouched
        snapshots: Reported snapshots in webhook order
        restore_location: Set only on restore reports
        snapshot_id: Restored snapshot ID, set only on restore reports
    """

    name: str
    bucket_name: str = ""
    metrics: dict[str, Any] = field(default_factory=dict)
    snapshots: list[SnapshotEntry] = field(default_factory=list)
    restore_location: str | None = None
    snapshot_id: str | None = None

    @property
    def is_restore(self) -> bool:
        return bool(self.restore_location)

    @property
    def snapshot_ids(self) -> set[str]:
        return {s.id for s in self.snapshots}

    @classmethod
    def from_dict(cls, data: Any) -> BackupReport:
        """Create from a decoded JSON body.

        Args:
            data: Decoded webhook body

        Returns:
            BackupReport instance

        Raises:
            DecodeError: If the body does not have the shape of a report
        """
        if not isinstance(data, dict):
            raise DecodeError(f"Report must be a JSON object, got {type(data).__name__}")

        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise DecodeError("Report is missing a string 'name'")

        raw_snapshots = data.get("snapshots") or []
        if not isinstance(raw_snapshots, list):
            raise DecodeError("Report 'snapshots' must be a list")

        metrics = data.get("metrics") or {}
        if not isinstance(metrics, dict):
            raise DecodeError("Report 'metrics' must be an object")

        return cls(
            name=name,
            bucket_name=str(data.get("bucket_name") or ""),
            metrics=metrics,
            snapshots=[SnapshotEntry.from_dict(s) for s in raw_snapshots],
            restore_location=data.get("restore_location") or None,
            snapshot_id=data.get("snapshot_ID") or None,
        )

    @classmethod
    def from_json(cls, raw: bytes | str) -> BackupReport:
        """Decode a raw webhook body.

        Raises:
            DecodeError: If the body is not valid JSON or not a report
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(f"Invalid JSON body: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "bucket_name": self.bucket_name,
            "metrics": self.metrics,
            "snapshots": [s.to_dict() for s in self.snapshots],
        }
        if self.restore_location:
            result["restore_location"] = self.restore_location
        if self.snapshot_id:
            result["snapshot_ID"] = self.snapshot_id
        return result

    def with_snapshot(self, entry: SnapshotEntry) -> BackupReport:
        """Copy of this report reduced to a single snapshot."""
        return replace(self, snapshots=[entry], restore_location=None, snapshot_id=None)


@dataclass(frozen=True)
class AuthoritativeBackupRecord:
    """A backup already recorded in the Lagoon API.

    Attributes:
        backup_id: Snapshot identifier, same key space as SnapshotEntry.id
        record_id: API primary key of the record
        source: Backup source (e.g. "nginx", "mariadb")
        created: Creation timestamp as returned by the API
    """

    backup_id: str
    record_id: int | None = None
    source: str | None = None
    created: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuthoritativeBackupRecord:
        return cls(
            backup_id=data["backupId"],
            record_id=data.get("id"),
            source=data.get("source"),
            created=data.get("created"),
        )


@dataclass(frozen=True)
class OutboundEvent:
    """Envelope published to the event topic.

    Created right before publishing and never stored locally.
    """

    event: str
    body: BackupReport
    uuid: str = field(default_factory=lambda: str(uuid4()))
    webhook_type: str = WEBHOOK_TYPE

    @classmethod
    def restore_finished(cls, report: BackupReport) -> OutboundEvent:
        return cls(event=EVENT_RESTORE_FINISHED, body=report)

    @classmethod
    def snapshot_finished(cls, report: BackupReport, entry: SnapshotEntry) -> OutboundEvent:
        return cls(event=EVENT_SNAPSHOT_FINISHED, body=report.with_snapshot(entry))

    @property
    def environment(self) -> str:
        return self.body.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "webhookType": self.webhook_type,
            "event": self.event,
            "uuid": self.uuid,
            "body": self.body.to_dict(),
        }

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    def __str__(self) -> str:
        return f"{self.webhook_type}:{self.event} ({self.uuid})"
