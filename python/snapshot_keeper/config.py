"""
Configuration management for Snapshot Keeper.

Supports YAML config files with environment variable overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from snapshot_keeper.exceptions import ConfigurationError
from snapshot_keeper.models import CreationSchedule, PurgeSchedule

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class AWSConfig(BaseModel):
    """Configuration for the block-storage API."""

    region: str = Field(default="us-east-1", description="AWS region")
    profile: str | None = Field(default=None, description="Named AWS profile")
    owner_id: str = Field(default="self", description="Snapshot owner filter")


class NotificationConfig(BaseModel):
    """Configuration for run report publishing."""

    topic_arn: str | None = Field(default=None, description="SNS topic ARN (None disables)")
    subject: str = Field(default="Snapshot Keeper report", description="Message subject")
    max_retries: int = Field(default=3, ge=1, description="Maximum publish attempts")
    retry_delay_seconds: float = Field(default=1.0, ge=0, description="Base retry delay")


class PolicyConfig(BaseModel):
    """Configuration for lifecycle decisions."""

    timezone: str = Field(default="UTC", description="Zone used for calendar buckets")
    week_start: str = Field(default="monday", description="First day of a weekly bucket")
    continue_on_error: bool = Field(
        default=False, description="Skip a failing volume instead of aborting the run"
    )
    dry_run: bool = Field(default=False, description="Plan actions without executing them")
    description_template: str = Field(
        default="snapshot-keeper: {volume_id} at {timestamp}",
        description="Description for created snapshots",
    )
    tags: dict[str, str] = Field(default_factory=dict, description="Tags for created snapshots")

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {value}") from e
        return value

    @field_validator("week_start")
    @classmethod
    def _check_week_start(cls, value: str) -> str:
        value = value.lower()
        if value not in WEEKDAYS:
            raise ValueError(f"week_start must be one of {', '.join(WEEKDAYS)}")
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        """Zone object for bucket truncation."""
        return ZoneInfo(self.timezone)

    @property
    def week_start_index(self) -> int:
        """Week start as a weekday number (Monday is 0)."""
        return WEEKDAYS.index(self.week_start)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format (json, plain)")
    file: str | None = Field(default=None, description="Log file path (None for stdout)")


class Config(BaseSettings):
    """Main configuration for Snapshot Keeper."""

    model_config = SettingsConfigDict(
        env_prefix="SNAPSHOT_KEEPER_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    volumes: list[str] = Field(default_factory=list, description="Volumes to manage, in order")
    creation_schedules: dict[str, CreationSchedule] = Field(default_factory=dict)
    purge_schedules: dict[str, PurgeSchedule] = Field(default_factory=dict)
    aws: AWSConfig = Field(default_factory=AWSConfig)
    notification: NotificationConfig = Field(default_factory=NotificationConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Config:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError.missing_file(str(path))

        with path.open() as f:
            try:
                data: Any = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError.validation_failed(str(path), "<unparsable>", str(e)) from e

        if not isinstance(data, dict):
            raise ConfigurationError.validation_failed(
                str(path), type(data).__name__, "top level must be a mapping"
            )

        return cls(**data)

    @classmethod
    def load(cls, config_path: str | None = None) -> Config:
        """
        Load configuration with precedence:
        1. Environment variables (highest)
        2. Config file
        3. Defaults (lowest)
        """
        if config_path is None:
            config_path = os.getenv("SNAPSHOT_KEEPER_CONFIG")

        if config_path is None:
            for candidate in [
                "snapshot-keeper.yaml",
                "snapshot-keeper.yml",
                "config/snapshot-keeper.yaml",
                ".snapshot-keeper.yaml",
            ]:
                if Path(candidate).exists():
                    config_path = candidate
                    break

        if config_path:
            return cls.from_yaml(config_path)

        return cls()

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with path.open("w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)

    def validate_schedules(self) -> None:
        """
        Check that every configured volume resolves in both schedule tables.

        Raises:
            ConfigurationError: If the volume list is empty or repeats an id,
                or if a volume has neither an explicit nor a wildcard schedule.
        """
        from snapshot_keeper.engine.schedules import resolve

        if not self.volumes:
            raise ConfigurationError.validation_failed("volumes", self.volumes, "no volumes configured")

        duplicates = sorted({v for v in self.volumes if self.volumes.count(v) > 1})
        if duplicates:
            raise ConfigurationError.validation_failed(
                "volumes", duplicates, "volumes listed more than once"
            )

        for volume_id in self.volumes:
            resolve(self.creation_schedules, volume_id, kind="creation")
            resolve(self.purge_schedules, volume_id, kind="purge")


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
