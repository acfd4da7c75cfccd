"""Pytest configuration and shared fixtures for Python tests."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone

import pytest

from snapshot_keeper.exceptions import ApiError, DeleteError, VolumeNotFoundError
from snapshot_keeper.models import Snapshot, SnapshotStatus, Volume

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "aws: marks tests that exercise the boto3 adapters")


class FakeSnapshotClient:
    """In-memory SnapshotClient that records every call."""

    def __init__(
        self,
        snapshots: Iterable[Snapshot] = (),
        volumes: Iterable[str] | None = None,
        fail_create: Iterable[str] = (),
        fail_delete: Iterable[str] = (),
        created_at: datetime = NOW,
    ) -> None:
        self.snapshots = list(snapshots)
        self.volumes = set(volumes) if volumes is not None else None
        self.fail_create = set(fail_create)
        self.fail_delete = set(fail_delete)
        self.created_at = created_at
        self.list_calls = 0
        self.volume_calls: list[list[str]] = []
        self.created: list[tuple[str, str]] = []
        self.deleted: list[str] = []

    def list_snapshots(self) -> list[Snapshot]:
        self.list_calls += 1
        return list(self.snapshots)

    def list_volumes(self, volume_ids: list[str]) -> list[Volume]:
        self.volume_calls.append(list(volume_ids))
        for volume_id in volume_ids:
            if self.volumes is not None and volume_id not in self.volumes:
                raise VolumeNotFoundError.for_volume(volume_id)
        return [Volume(volume_id=volume_id) for volume_id in volume_ids]

    def create_snapshot(self, volume_id: str, description: str) -> Snapshot:
        if volume_id in self.fail_create:
            raise ApiError.request_failed("create_snapshot", "quota exceeded", volume_id=volume_id)
        snapshot = Snapshot(
            snapshot_id=f"snap-new-{len(self.created) + 1}",
            volume_id=volume_id,
            start_time=self.created_at,
            status=SnapshotStatus.PENDING,
            description=description,
        )
        self.snapshots.append(snapshot)
        self.created.append((volume_id, description))
        return snapshot

    def delete_snapshot(self, snapshot_id: str) -> None:
        if snapshot_id in self.fail_delete:
            raise DeleteError.in_use(snapshot_id)
        self.snapshots = [s for s in self.snapshots if s.snapshot_id != snapshot_id]
        self.deleted.append(snapshot_id)


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant: Friday 2024-03-15 12:00 UTC."""
    return NOW


@pytest.fixture
def make_snapshot() -> Callable[..., Snapshot]:
    """Factory building a snapshot from its age in hours relative to NOW."""

    def _make(
        snapshot_id: str,
        age_hours: float | None = None,
        *,
        volume_id: str = "vol-1",
        at: datetime | None = None,
        status: SnapshotStatus = SnapshotStatus.COMPLETED,
    ) -> Snapshot:
        if at is None:
            at = NOW - timedelta(hours=age_hours or 0)
        return Snapshot(snapshot_id=snapshot_id, volume_id=volume_id, start_time=at, status=status)

    return _make


@pytest.fixture
def make_client() -> Callable[..., FakeSnapshotClient]:
    """Factory for in-memory snapshot clients."""
    return FakeSnapshotClient
