"""
EC2 block-storage client.

Wraps the boto3 EC2 API behind the SnapshotClient interface and maps
botocore failures onto the snapshot-keeper exception hierarchy.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from snapshot_keeper.exceptions import ApiError, DeleteError, VolumeNotFoundError
from snapshot_keeper.logging import get_logger
from snapshot_keeper.models import Snapshot, SnapshotStatus, Volume

if TYPE_CHECKING:
    from snapshot_keeper.config import Config

logger = get_logger(__name__)

THROTTLING_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "TooManyRequestsException",
    }
)

_STATE_MAP = {
    "pending": SnapshotStatus.PENDING,
    "completed": SnapshotStatus.COMPLETED,
    "error": SnapshotStatus.ERROR,
}


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def _error_message(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Message", str(error))


def _api_error(operation: str, error: Exception, volume_id: str | None = None) -> ApiError:
    if isinstance(error, ClientError):
        if _error_code(error) in THROTTLING_CODES:
            return ApiError.throttled(operation, cause=error)
        return ApiError.request_failed(operation, _error_message(error), volume_id=volume_id, cause=error)
    return ApiError.request_failed(operation, str(error), volume_id=volume_id, cause=error)


def _to_snapshot(item: Mapping[str, Any]) -> Snapshot:
    # recoverable/recovering snapshots sit in the recycle bin; treat them as unusable
    status = _STATE_MAP.get(item.get("State", ""), SnapshotStatus.ERROR)
    return Snapshot(
        snapshot_id=item["SnapshotId"],
        volume_id=item["VolumeId"],
        start_time=item["StartTime"],
        status=status,
        description=item.get("Description", ""),
    )


class EC2SnapshotClient:
    """
    SnapshotClient backed by the EC2 API.

    Example:
        client = EC2SnapshotClient(boto3.client("ec2", region_name="eu-west-1"))
        snapshots = client.list_snapshots()
    """

    def __init__(
        self,
        ec2_client: Any,
        owner_id: str = "self",
        tags: Mapping[str, str] | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            ec2_client: boto3 EC2 client.
            owner_id: Owner filter for snapshot listing.
            tags: Tags applied to created snapshots.
        """
        self._ec2 = ec2_client
        self._owner_id = owner_id
        self._tags = dict(tags or {})

    @classmethod
    def from_config(cls, config: Config) -> EC2SnapshotClient:
        """Build a client from the AWS and policy sections of the configuration."""
        session = boto3.Session(
            profile_name=config.aws.profile,
            region_name=config.aws.region,
        )
        return cls(
            session.client("ec2"),
            owner_id=config.aws.owner_id,
            tags=config.policy.tags,
        )

    def list_snapshots(self) -> list[Snapshot]:
        """List all snapshots owned by the configured owner."""
        snapshots: list[Snapshot] = []
        try:
            paginator = self._ec2.get_paginator("describe_snapshots")
            for page in paginator.paginate(OwnerIds=[self._owner_id]):
                for item in page.get("Snapshots", []):
                    if not item.get("VolumeId"):
                        continue
                    snapshots.append(_to_snapshot(item))
        except (ClientError, BotoCoreError) as e:
            raise _api_error("describe_snapshots", e) from e

        logger.debug("snapshots_listed", owner_id=self._owner_id, count=len(snapshots))
        return snapshots

    def list_volumes(self, volume_ids: Sequence[str]) -> list[Volume]:
        """
        Describe the given volumes.

        Raises:
            VolumeNotFoundError: For the first requested id that does not exist.
            ApiError: If the API call fails.
        """
        ids = list(volume_ids)
        if not ids:
            return []

        found: dict[str, Volume] = {}
        try:
            paginator = self._ec2.get_paginator("describe_volumes")
            for page in paginator.paginate(Filters=[{"Name": "volume-id", "Values": ids}]):
                for item in page.get("Volumes", []):
                    found[item["VolumeId"]] = Volume(
                        volume_id=item["VolumeId"],
                        size_gib=item.get("Size"),
                        state=item.get("State"),
                        availability_zone=item.get("AvailabilityZone"),
                    )
        except ClientError as e:
            if _error_code(e) in ("InvalidVolume.NotFound", "InvalidVolumeID.Malformed"):
                error = VolumeNotFoundError.for_volume(ids[0])
                error.context["reason"] = _error_message(e)
                raise error from e
            raise _api_error("describe_volumes", e) from e
        except BotoCoreError as e:
            raise _api_error("describe_volumes", e) from e

        missing = [volume_id for volume_id in ids if volume_id not in found]
        if missing:
            error = VolumeNotFoundError.for_volume(missing[0])
            error.context["missing"] = missing
            raise error

        return [found[volume_id] for volume_id in ids]

    def create_snapshot(self, volume_id: str, description: str) -> Snapshot:
        """Request a snapshot of a volume; the result is usually still pending."""
        params: dict[str, Any] = {"VolumeId": volume_id, "Description": description}
        if self._tags:
            params["TagSpecifications"] = [
                {
                    "ResourceType": "snapshot",
                    "Tags": [{"Key": k, "Value": v} for k, v in self._tags.items()],
                }
            ]

        try:
            response = self._ec2.create_snapshot(**params)
        except (ClientError, BotoCoreError) as e:
            raise _api_error("create_snapshot", e, volume_id=volume_id) from e

        return _to_snapshot(response)

    def delete_snapshot(self, snapshot_id: str) -> None:
        """
        Delete a snapshot.

        Raises:
            DeleteError: If the snapshot is in use, already gone, or the call fails.
        """
        try:
            self._ec2.delete_snapshot(SnapshotId=snapshot_id)
        except ClientError as e:
            if _error_code(e) == "InvalidSnapshot.InUse":
                raise DeleteError.in_use(snapshot_id, cause=e) from e
            raise DeleteError.delete_failed(snapshot_id, _error_message(e), cause=e) from e
        except BotoCoreError as e:
            raise DeleteError.delete_failed(snapshot_id, str(e), cause=e) from e
