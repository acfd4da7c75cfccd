"""
Snapshot lifecycle policy engine.

This package holds the decision logic:
- Schedule resolution with a wildcard default
- Staleness detection for snapshot creation
- Tiered retention planning for snapshot deletion
- Orchestration of both across the configured volumes
"""

from snapshot_keeper.engine.orchestrator import (
    LifecycleOrchestrator,
    Notifier,
    RunError,
    RunResult,
    SnapshotClient,
    run_lifecycle,
)
from snapshot_keeper.engine.retention import (
    BucketKey,
    RetentionDecision,
    Tier,
    age_in_hours,
    bucket_for,
    plan_purge,
    week_start_date,
)
from snapshot_keeper.engine.schedules import WILDCARD, resolve
from snapshot_keeper.engine.staleness import needs_snapshot, newest_snapshot

__all__ = [
    "WILDCARD",
    "BucketKey",
    "LifecycleOrchestrator",
    "Notifier",
    "RetentionDecision",
    "RunError",
    "RunResult",
    "SnapshotClient",
    "Tier",
    "age_in_hours",
    "bucket_for",
    "needs_snapshot",
    "newest_snapshot",
    "plan_purge",
    "resolve",
    "run_lifecycle",
    "week_start_date",
]
