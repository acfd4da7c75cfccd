"""Decide whether a volume is due for a new snapshot."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from snapshot_keeper.models import CreationSchedule, Snapshot


def newest_snapshot(history: Iterable[Snapshot], volume_id: str | None = None) -> Snapshot | None:
    """Return the newest non-error snapshot, optionally restricted to one volume."""
    newest: Snapshot | None = None
    for snapshot in history:
        if not snapshot.is_usable:
            continue
        if volume_id is not None and snapshot.volume_id != volume_id:
            continue
        if newest is None or snapshot.start_time > newest.start_time:
            newest = snapshot
    return newest


def needs_snapshot(
    now: datetime,
    history: Iterable[Snapshot],
    creation_schedule: CreationSchedule,
    volume_id: str | None = None,
) -> bool:
    """
    Check whether the newest snapshot is older than the schedule allows.

    A volume with no usable snapshot always needs one. A snapshot exactly
    ``max_age`` old is still fresh.

    Args:
        now: Reference instant (timezone-aware).
        history: Snapshots of the volume; others are ignored when volume_id is given.
        creation_schedule: Maximum allowed age.
        volume_id: Optional volume filter.

    Returns:
        True if a snapshot must be created.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    newest = newest_snapshot(history, volume_id)
    if newest is None:
        return True

    return newest.start_time < now - creation_schedule.max_age()
