"""
Lifecycle orchestration across all configured volumes.

A run validates the configured volumes, resolves their schedules, creates
snapshots for stale volumes, refreshes the inventory if anything was
created, and then deletes the snapshots the retention planner marks as
redundant. All cloud I/O goes through a SnapshotClient; the run report is
published through an optional Notifier.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Any, Protocol

from snapshot_keeper.engine.retention import RetentionDecision, plan_purge
from snapshot_keeper.engine.schedules import resolve
from snapshot_keeper.engine.staleness import needs_snapshot
from snapshot_keeper.exceptions import (
    ApiError,
    DeleteError,
    NotificationError,
    SnapshotKeeperError,
    VolumeNotFoundError,
)
from snapshot_keeper.logging import get_logger, with_context
from snapshot_keeper.models import CreationSchedule, PurgeSchedule, Snapshot, Volume

logger = get_logger(__name__)

DEFAULT_DESCRIPTION = "snapshot-keeper: {volume_id} at {timestamp}"
DEFAULT_SUBJECT = "Snapshot Keeper report"


class SnapshotClient(Protocol):
    """Block-storage operations the orchestrator depends on."""

    def list_snapshots(self) -> Sequence[Snapshot]:
        """List every snapshot owned by the account."""
        ...

    def list_volumes(self, volume_ids: Sequence[str]) -> Sequence[Volume]:
        """Describe volumes; raises VolumeNotFoundError for a missing id."""
        ...

    def create_snapshot(self, volume_id: str, description: str) -> Snapshot:
        """Request a new snapshot of a volume."""
        ...

    def delete_snapshot(self, snapshot_id: str) -> None:
        """Delete a snapshot; raises DeleteError on failure."""
        ...


class Notifier(Protocol):
    """Destination for the human-readable run report."""

    def notify(self, subject: str, text: str) -> None:
        """Publish a report."""
        ...


@dataclass
class RunError:
    """An error collected during a run instead of aborting it."""

    volume_id: str | None
    operation: str
    error: SnapshotKeeperError

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and output."""
        return {
            "volume_id": self.volume_id,
            "operation": self.operation,
            **self.error.to_dict(),
        }


@dataclass
class RunResult:
    """Outcome of one lifecycle run."""

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    dry_run: bool = False
    created: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    planned_creates: list[str] = field(default_factory=list)
    planned_deletes: list[str] = field(default_factory=list)
    errors: list[RunError] = field(default_factory=list)
    decisions: dict[str, RetentionDecision] = field(default_factory=dict)
    notifications: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if the run completed without collected errors."""
        return len(self.errors) == 0

    def summary_text(self) -> str:
        """Human-readable report, one line per executed action."""
        lines = list(self.notifications)
        for error in self.errors:
            lines.append(f"Error during {error.operation} for {error.volume_id or '-'}: {error.error}")
        if not lines:
            lines.append("No snapshots created or deleted.")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for output."""
        return {
            "run_id": self.run_id,
            "now": self.now.isoformat(),
            "dry_run": self.dry_run,
            "created": self.created,
            "deleted": self.deleted,
            "planned_creates": self.planned_creates,
            "planned_deletes": self.planned_deletes,
            "errors": [e.to_dict() for e in self.errors],
            "decisions": {k: v.to_dict() for k, v in self.decisions.items()},
            "success": self.success,
        }


class LifecycleOrchestrator:
    """
    Runs snapshot creation and retention over the configured volumes.

    Volumes are processed one at a time in configured order. Schedule
    resolution errors always abort the run; volume lookup and API errors
    abort it unless continue_on_error is set, in which case they are
    recorded and the volume is skipped. Individual delete failures never
    abort the run.
    """

    def __init__(
        self,
        client: SnapshotClient,
        notifier: Notifier | None = None,
        *,
        tz: tzinfo = timezone.utc,
        week_start: int = 0,
        continue_on_error: bool = False,
        dry_run: bool = False,
        description_template: str = DEFAULT_DESCRIPTION,
        subject: str = DEFAULT_SUBJECT,
    ) -> None:
        self._client = client
        self._notifier = notifier
        self._tz = tz
        self._week_start = week_start
        self._continue_on_error = continue_on_error
        self._dry_run = dry_run
        self._description_template = description_template
        self._subject = subject

    def run(
        self,
        now: datetime,
        volume_ids: Sequence[str],
        creation_schedules: Mapping[str, CreationSchedule],
        purge_schedules: Mapping[str, PurgeSchedule],
    ) -> RunResult:
        """
        Execute one lifecycle run.

        Args:
            now: Reference instant used for every age computation.
            volume_ids: Volumes to manage, in processing order.
            creation_schedules: Creation schedules keyed by volume id or ``*``.
            purge_schedules: Purge schedules keyed by volume id or ``*``.

        Returns:
            The run result.

        Raises:
            ConfigurationError: If a volume has no creation or purge schedule.
            VolumeNotFoundError: If a volume does not exist and
                continue_on_error is off.
            ApiError: If a list or create call fails and continue_on_error
                is off.
        """
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")

        # each volume is processed once, in first-seen order
        volume_ids = list(dict.fromkeys(volume_ids))
        result = RunResult(now=now, dry_run=self._dry_run)

        with with_context(run_id=result.run_id):
            logger.info(
                "run_started",
                volume_count=len(volume_ids),
                dry_run=self._dry_run,
                now=now.isoformat(),
            )

            schedules = {
                volume_id: (
                    resolve(creation_schedules, volume_id, kind="creation"),
                    resolve(purge_schedules, volume_id, kind="purge"),
                )
                for volume_id in volume_ids
            }
            for volume_id, (creation_schedule, _) in schedules.items():
                if creation_schedule.is_zero():
                    logger.warning("creation_schedule_zero", volume_id=volume_id)

            active = self._validate_volumes(volume_ids, result)

            inventory = self._client.list_snapshots()
            logger.debug("inventory_fetched", snapshot_count=len(inventory))

            failed: set[str] = set()
            for volume_id in active:
                creation_schedule = schedules[volume_id][0]
                with with_context(volume_id=volume_id):
                    if not self._create_if_stale(now, volume_id, inventory, creation_schedule, result):
                        failed.add(volume_id)

            if result.created:
                inventory = self._client.list_snapshots()
                logger.debug("inventory_refreshed", snapshot_count=len(inventory))

            for volume_id in active:
                if volume_id in failed:
                    continue
                purge_schedule = schedules[volume_id][1]
                with with_context(volume_id=volume_id):
                    self._purge(now, volume_id, inventory, purge_schedule, result)

            self._publish(result)

            logger.info(
                "run_completed",
                created=len(result.created),
                deleted=len(result.deleted),
                planned_creates=len(result.planned_creates),
                planned_deletes=len(result.planned_deletes),
                error_count=len(result.errors),
            )

        return result

    def _validate_volumes(self, volume_ids: Sequence[str], result: RunResult) -> list[str]:
        """Return the volumes that exist, in configured order."""
        if not self._continue_on_error:
            self._client.list_volumes(list(volume_ids))
            return list(volume_ids)

        active: list[str] = []
        for volume_id in volume_ids:
            try:
                self._client.list_volumes([volume_id])
            except (VolumeNotFoundError, ApiError) as e:
                logger.warning("volume_skipped", volume_id=volume_id, error=str(e))
                result.errors.append(RunError(volume_id, "list_volumes", e))
                continue
            active.append(volume_id)
        return active

    def _create_if_stale(
        self,
        now: datetime,
        volume_id: str,
        inventory: Sequence[Snapshot],
        schedule: CreationSchedule,
        result: RunResult,
    ) -> bool:
        """Create a snapshot when the volume is stale. Returns False on a recorded failure."""
        if not needs_snapshot(now, inventory, schedule, volume_id=volume_id):
            logger.debug("snapshot_fresh")
            return True

        result.planned_creates.append(volume_id)

        if self._dry_run:
            logger.info("snapshot_create_planned")
            result.notifications.append(f"[dry-run] Would create snapshot of {volume_id}")
            return True

        description = self._description_template.format(
            volume_id=volume_id, timestamp=now.isoformat()
        )
        try:
            snapshot = self._client.create_snapshot(volume_id, description)
        except ApiError as e:
            if not self._continue_on_error:
                raise
            logger.warning("snapshot_create_failed", error=str(e))
            result.errors.append(RunError(volume_id, "create_snapshot", e))
            return False

        result.created.append(snapshot.snapshot_id)
        result.notifications.append(f"Created snapshot {snapshot.snapshot_id} of {volume_id}")
        logger.info("snapshot_created", snapshot_id=snapshot.snapshot_id)
        return True

    def _purge(
        self,
        now: datetime,
        volume_id: str,
        inventory: Sequence[Snapshot],
        schedule: PurgeSchedule,
        result: RunResult,
    ) -> None:
        history = [s for s in inventory if s.volume_id == volume_id]
        decision = plan_purge(now, history, schedule, tz=self._tz, week_start=self._week_start)
        result.decisions[volume_id] = decision

        if decision.is_empty:
            logger.debug("purge_skipped_no_history")
            return

        logger.info(
            "purge_planned",
            keep_count=len(decision.keep),
            delete_count=len(decision.delete),
        )

        doomed = sorted(
            (s for s in history if s.snapshot_id in decision.delete),
            key=lambda s: (s.start_time, s.snapshot_id),
        )
        for snapshot in doomed:
            result.planned_deletes.append(snapshot.snapshot_id)
            taken = snapshot.start_time.isoformat()

            if self._dry_run:
                result.notifications.append(
                    f"[dry-run] Would delete snapshot {snapshot.snapshot_id} of {volume_id} (taken {taken})"
                )
                continue

            try:
                self._client.delete_snapshot(snapshot.snapshot_id)
            except DeleteError as e:
                logger.warning("snapshot_delete_failed", snapshot_id=snapshot.snapshot_id, error=str(e))
                result.errors.append(RunError(volume_id, "delete_snapshot", e))
                continue

            result.deleted.append(snapshot.snapshot_id)
            result.notifications.append(
                f"Deleted snapshot {snapshot.snapshot_id} of {volume_id} (taken {taken})"
            )
            logger.info("snapshot_deleted", snapshot_id=snapshot.snapshot_id, taken=taken)

    def _publish(self, result: RunResult) -> None:
        if self._notifier is None or not result.notifications:
            return
        if self._dry_run:
            logger.info("notification_skipped", reason="dry_run", line_count=len(result.notifications))
            return

        try:
            self._notifier.notify(self._subject, result.summary_text())
        except NotificationError as e:
            logger.warning("notification_failed", error=str(e))
            result.errors.append(RunError(None, "notify", e))


def run_lifecycle(
    now: datetime,
    volume_ids: Sequence[str],
    creation_schedules: Mapping[str, CreationSchedule],
    purge_schedules: Mapping[str, PurgeSchedule],
    client: SnapshotClient,
    notifier: Notifier | None = None,
    **options: Any,
) -> RunResult:
    """
    Run one lifecycle pass.

    Keyword options are passed to LifecycleOrchestrator.
    """
    orchestrator = LifecycleOrchestrator(client, notifier, **options)
    return orchestrator.run(now, volume_ids, creation_schedules, purge_schedules)
