"""
Snapshot Keeper - EBS snapshot lifecycle management

This package keeps block-storage snapshots fresh and bounded:
- Creation of a snapshot when a volume's newest one exceeds its maximum age
- Tiered (hourly/daily/weekly/monthly) pruning of redundant snapshots
- Per-volume schedules with a wildcard default
- EC2 and SNS collaborators for execution and reporting
"""

__version__ = "0.1.0"
__all__ = [
    "aws",
    "cli",
    "config",
    "engine",
    "exceptions",
    "logging",
    "models",
]
