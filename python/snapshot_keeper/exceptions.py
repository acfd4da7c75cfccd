"""
Custom exception hierarchy for Snapshot Keeper.

Exception hierarchy:
- SnapshotKeeperError: Base exception for all snapshot-keeper errors
- ConfigurationError: Configuration and schedule resolution issues
- VolumeNotFoundError: A configured volume does not exist
- ApiError: Block-storage API call failures
- DeleteError: A single snapshot could not be deleted
- NotificationError: Report publishing failures

Each exception includes:
- error_code: Machine-readable error identifier
- context: Additional structured data for debugging
- is_retryable: Whether the operation can be retried
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes for categorization and monitoring."""

    # Configuration errors (1xxx)
    CONFIG_INVALID = "KEEPER_1001"
    CONFIG_MISSING = "KEEPER_1002"
    CONFIG_VALIDATION = "KEEPER_1003"
    CONFIG_NO_SCHEDULE = "KEEPER_1004"

    # Inventory errors (2xxx)
    VOLUME_NOT_FOUND = "KEEPER_2001"

    # API errors (3xxx)
    API_REQUEST_FAILED = "KEEPER_3001"
    API_THROTTLED = "KEEPER_3002"

    # Deletion errors (4xxx)
    DELETE_FAILED = "KEEPER_4001"
    DELETE_IN_USE = "KEEPER_4002"

    # Notification errors (5xxx)
    NOTIFY_FAILED = "KEEPER_5001"

    # General errors (9xxx)
    UNKNOWN = "KEEPER_9999"


@dataclass
class SnapshotKeeperError(Exception):
    """
    Base exception for all Snapshot Keeper errors.

    Provides structured error information for logging and monitoring.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error identifier
        context: Additional structured data for debugging
        is_retryable: Whether the operation can be safely retried
        cause: Original exception that caused this error
    """

    message: str
    error_code: ErrorCode = ErrorCode.UNKNOWN
    context: dict[str, Any] = field(default_factory=dict)
    is_retryable: bool = False
    cause: Exception | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        parts = [f"[{self.error_code.value}] {self.message}"]
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f" ({context_str})")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"context={self.context!r}, "
            f"is_retryable={self.is_retryable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value,
            "message": self.message,
            "context": self.context,
            "is_retryable": self.is_retryable,
            "cause": str(self.cause) if self.cause else None,
        }


@dataclass
class ConfigurationError(SnapshotKeeperError):
    """Raised when configuration is invalid, missing, or incomplete for a volume."""

    error_code: ErrorCode = ErrorCode.CONFIG_INVALID

    @classmethod
    def missing_file(cls, path: str) -> ConfigurationError:
        """Create error for missing configuration file."""
        return cls(
            message=f"Configuration file not found: {path}",
            error_code=ErrorCode.CONFIG_MISSING,
            context={"path": path},
        )

    @classmethod
    def validation_failed(cls, field: str, value: Any, reason: str) -> ConfigurationError:
        """Create error for validation failure."""
        return cls(
            message=f"Configuration validation failed for '{field}': {reason}",
            error_code=ErrorCode.CONFIG_VALIDATION,
            context={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def missing_schedule(cls, volume_id: str, kind: str) -> ConfigurationError:
        """Create error for a volume with neither an explicit nor a wildcard schedule."""
        return cls(
            message=f"No {kind} schedule for volume",
            error_code=ErrorCode.CONFIG_NO_SCHEDULE,
            context={"volume_id": volume_id, "schedule": kind},
        )


@dataclass
class VolumeNotFoundError(SnapshotKeeperError):
    """Raised when a configured volume cannot be found."""

    error_code: ErrorCode = ErrorCode.VOLUME_NOT_FOUND

    @classmethod
    def for_volume(cls, volume_id: str) -> VolumeNotFoundError:
        """Create error for a single missing volume."""
        return cls(
            message=f"Volume not found: {volume_id}",
            context={"volume_id": volume_id, "operation": "list_volumes"},
        )

    @property
    def volume_id(self) -> str | None:
        """Volume the error refers to."""
        return self.context.get("volume_id")


@dataclass
class ApiError(SnapshotKeeperError):
    """Raised when a block-storage API call fails."""

    error_code: ErrorCode = ErrorCode.API_REQUEST_FAILED

    @classmethod
    def request_failed(
        cls,
        operation: str,
        reason: str,
        volume_id: str | None = None,
        cause: Exception | None = None,
    ) -> ApiError:
        """Create error for a failed API request."""
        context: dict[str, Any] = {"operation": operation, "reason": reason}
        if volume_id is not None:
            context["volume_id"] = volume_id
        return cls(
            message=f"API call '{operation}' failed: {reason}",
            error_code=ErrorCode.API_REQUEST_FAILED,
            context=context,
            cause=cause,
        )

    @classmethod
    def throttled(cls, operation: str, cause: Exception | None = None) -> ApiError:
        """Create error for a throttled API request."""
        return cls(
            message=f"API call '{operation}' was throttled",
            error_code=ErrorCode.API_THROTTLED,
            context={"operation": operation},
            is_retryable=True,
            cause=cause,
        )


@dataclass
class DeleteError(SnapshotKeeperError):
    """Raised when a single snapshot cannot be deleted."""

    error_code: ErrorCode = ErrorCode.DELETE_FAILED

    @classmethod
    def delete_failed(
        cls, snapshot_id: str, reason: str, cause: Exception | None = None
    ) -> DeleteError:
        """Create error for a failed deletion."""
        return cls(
            message=f"Failed to delete snapshot {snapshot_id}: {reason}",
            error_code=ErrorCode.DELETE_FAILED,
            context={"snapshot_id": snapshot_id, "operation": "delete_snapshot", "reason": reason},
            cause=cause,
        )

    @classmethod
    def in_use(cls, snapshot_id: str, cause: Exception | None = None) -> DeleteError:
        """Create error for a snapshot still referenced elsewhere."""
        return cls(
            message=f"Snapshot {snapshot_id} is in use",
            error_code=ErrorCode.DELETE_IN_USE,
            context={"snapshot_id": snapshot_id, "operation": "delete_snapshot"},
            cause=cause,
        )


@dataclass
class NotificationError(SnapshotKeeperError):
    """Raised when the run report cannot be published."""

    error_code: ErrorCode = ErrorCode.NOTIFY_FAILED
    is_retryable: bool = True

    @classmethod
    def publish_failed(cls, topic: str, reason: str) -> NotificationError:
        """Create error for a failed publish."""
        return cls(
            message=f"Failed to publish notification: {reason}",
            error_code=ErrorCode.NOTIFY_FAILED,
            context={"topic": topic, "reason": reason},
        )
