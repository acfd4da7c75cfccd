"""
Tiered retention planning for a single volume's snapshot history.

Snapshots younger than the purge schedule's ``hours`` threshold are always
kept. Older snapshots fall into a daily, weekly or monthly tier by age and
are grouped into calendar buckets in the configured zone; walking from
oldest to newest, the first snapshot entering a bucket is kept and any
immediate followers in the same bucket are deleted. The newest snapshot of
the volume is never deleted.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Any

from snapshot_keeper.models import PurgeSchedule, Snapshot

_HOUR = timedelta(hours=1)


class Tier(str, Enum):
    """Retention tier a snapshot's age places it in."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class BucketKey:
    """Calendar bucket: a tier and the local date the bucket starts on."""

    tier: Tier
    start: date

    def __str__(self) -> str:
        return f"{self.tier.value}:{self.start.isoformat()}"


@dataclass(frozen=True)
class RetentionDecision:
    """
    Keep/delete partition of one volume's usable snapshots.

    Attributes:
        volume_id: Volume the decision applies to (None when unknown).
        keep: Snapshot ids to retain.
        delete: Snapshot ids to remove.
        buckets: Bucket each snapshot fell into; None for youth-exempt ones.
    """

    volume_id: str | None = None
    keep: frozenset[str] = field(default_factory=frozenset)
    delete: frozenset[str] = field(default_factory=frozenset)
    buckets: dict[str, BucketKey | None] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        """Whether no snapshot was considered."""
        return not self.keep and not self.delete

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "volume_id": self.volume_id,
            "keep": sorted(self.keep),
            "delete": sorted(self.delete),
            "keep_count": len(self.keep),
            "delete_count": len(self.delete),
        }


def age_in_hours(now: datetime, timestamp: datetime) -> int:
    """Whole hours elapsed since timestamp, rounded down."""
    return (now - timestamp) // _HOUR


def week_start_date(day: date, week_start: int = 0) -> date:
    """First day of the week containing day (week_start: 0 = Monday)."""
    return day - timedelta(days=(day.weekday() - week_start) % 7)


def bucket_for(
    age_hours: int,
    timestamp: datetime,
    schedule: PurgeSchedule,
    tz: tzinfo = timezone.utc,
    week_start: int = 0,
) -> BucketKey:
    """
    Classify a snapshot that is past the youth threshold.

    Args:
        age_hours: Whole-hour age of the snapshot.
        timestamp: Snapshot creation instant.
        schedule: Tier thresholds.
        tz: Zone used to derive calendar dates.
        week_start: First weekday of a weekly bucket.

    Returns:
        The bucket key for the snapshot.
    """
    local_day = timestamp.astimezone(tz).date()

    if age_hours <= schedule.daily_end:
        return BucketKey(Tier.DAILY, local_day)
    if age_hours <= schedule.weekly_end:
        return BucketKey(Tier.WEEKLY, week_start_date(local_day, week_start))
    return BucketKey(Tier.MONTHLY, local_day.replace(day=1))


def plan_purge(
    now: datetime,
    snapshots: Iterable[Snapshot],
    purge_schedule: PurgeSchedule,
    *,
    tz: tzinfo = timezone.utc,
    week_start: int = 0,
) -> RetentionDecision:
    """
    Partition a volume's snapshots into keep and delete sets.

    Args:
        now: Reference instant (timezone-aware).
        snapshots: All snapshots of exactly one volume, in any order.
            Error-status snapshots are ignored.
        purge_schedule: Tier thresholds.
        tz: Zone used to derive calendar dates.
        week_start: First weekday of a weekly bucket (0 = Monday).

    Returns:
        The retention decision. Empty input yields an empty decision.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    ordered = sorted(
        (s for s in snapshots if s.is_usable),
        key=lambda s: (s.start_time, s.snapshot_id),
    )
    if not ordered:
        return RetentionDecision()

    volume_ids = {s.volume_id for s in ordered}
    if len(volume_ids) > 1:
        raise ValueError(f"snapshots span several volumes: {sorted(volume_ids)}")

    newest_id = ordered[-1].snapshot_id
    keep: set[str] = set()
    delete: set[str] = set()
    buckets: dict[str, BucketKey | None] = {}
    prev_key: BucketKey | None = None

    for snapshot in ordered:
        age_hours = age_in_hours(now, snapshot.start_time)

        if age_hours <= purge_schedule.hours:
            # youth exemption does not claim a bucket
            keep.add(snapshot.snapshot_id)
            buckets[snapshot.snapshot_id] = None
            continue

        key = bucket_for(age_hours, snapshot.start_time, purge_schedule, tz, week_start)
        buckets[snapshot.snapshot_id] = key

        if key != prev_key:
            keep.add(snapshot.snapshot_id)
            prev_key = key
        elif snapshot.snapshot_id == newest_id:
            keep.add(snapshot.snapshot_id)
        else:
            delete.add(snapshot.snapshot_id)

    return RetentionDecision(
        volume_id=ordered[0].volume_id,
        keep=frozenset(keep),
        delete=frozenset(delete),
        buckets=buckets,
    )
