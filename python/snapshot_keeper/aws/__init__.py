"""
AWS collaborators for Snapshot Keeper.

- EC2SnapshotClient: snapshot and volume operations via the EC2 API
- SNSNotifier: run report publishing via SNS
"""

from snapshot_keeper.aws.ec2 import EC2SnapshotClient
from snapshot_keeper.aws.sns import SNSNotifier

__all__ = [
    "EC2SnapshotClient",
    "SNSNotifier",
]
