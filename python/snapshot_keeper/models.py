"""
Core data models for snapshot lifecycle decisions.

Snapshots and volumes are read-only views of block-storage state fetched
once per run. Schedules are loaded from configuration.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SnapshotStatus(str, Enum):
    """Lifecycle status of a snapshot as reported by the storage API."""

    PENDING = "pending"
    COMPLETED = "completed"
    ERROR = "error"


class Snapshot(BaseModel):
    """Point-in-time copy of a single volume."""

    model_config = ConfigDict(frozen=True)

    snapshot_id: str = Field(..., description="Opaque snapshot identifier")
    volume_id: str = Field(..., description="Volume this snapshot was taken from")
    start_time: datetime = Field(..., description="Creation instant (UTC)")
    status: SnapshotStatus = Field(default=SnapshotStatus.COMPLETED, description="Snapshot status")
    description: str = Field(default="", description="Free-form description")

    @field_validator("start_time")
    @classmethod
    def _normalize_start_time(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("start_time must be timezone-aware")
        return value.astimezone(timezone.utc)

    @property
    def is_usable(self) -> bool:
        """Whether the snapshot takes part in lifecycle decisions."""
        return self.status != SnapshotStatus.ERROR


class Volume(BaseModel):
    """Block-storage volume under management."""

    model_config = ConfigDict(frozen=True)

    volume_id: str = Field(..., description="Opaque volume identifier")
    size_gib: int | None = Field(default=None, description="Volume size in GiB")
    state: str | None = Field(default=None, description="Volume state (in-use, available, ...)")
    availability_zone: str | None = Field(default=None, description="Availability zone")


class CreationSchedule(BaseModel):
    """Maximum age of a volume's newest snapshot before a new one is due."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    years: int = Field(default=0, ge=0)
    months: int = Field(default=0, ge=0)
    days: int = Field(default=0, ge=0)
    hours: int = Field(default=0, ge=0)
    minutes: int = Field(default=0, ge=0)

    def max_age(self) -> relativedelta:
        """Calendar-aware maximum age."""
        return relativedelta(
            years=self.years,
            months=self.months,
            days=self.days,
            hours=self.hours,
            minutes=self.minutes,
        )

    def is_zero(self) -> bool:
        """Whether every snapshot is immediately stale."""
        return not any((self.years, self.months, self.days, self.hours, self.minutes))


class PurgeSchedule(BaseModel):
    """
    Tiered retention thresholds.

    ``hours`` is the minimum age below which nothing is deleted. ``days`` and
    ``weeks`` are widths of the daily and weekly tiers; everything older than
    the weekly tier is kept one per month. ``months`` is accepted but does not
    bound the monthly tier.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    hours: float = Field(default=0, ge=0)
    days: float = Field(default=0, ge=0)
    weeks: float = Field(default=0, ge=0)
    months: float = Field(default=0, ge=0)

    @property
    def daily_end(self) -> float:
        """Age in hours where the daily tier ends."""
        return self.hours + self.days * 24

    @property
    def weekly_end(self) -> float:
        """Age in hours where the weekly tier ends."""
        return self.daily_end + self.weeks * 24 * 7
