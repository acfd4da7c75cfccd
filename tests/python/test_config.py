"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from snapshot_keeper import config as config_module
from snapshot_keeper.config import (
    AWSConfig,
    Config,
    NotificationConfig,
    PolicyConfig,
    get_config,
    set_config,
)
from snapshot_keeper.exceptions import ConfigurationError, ErrorCode
from snapshot_keeper.models import CreationSchedule, PurgeSchedule

SAMPLE_YAML = """\
volumes:
  - vol-1
  - vol-2
creation_schedules:
  "*":
    days: 1
  vol-2:
    hours: 6
purge_schedules:
  "*":
    hours: 24
    days: 7
    weeks: 4
aws:
  region: eu-west-1
policy:
  timezone: Europe/Berlin
  week_start: Sunday
notification:
  topic_arn: arn:aws:sns:eu-west-1:123:snapshots
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SNAPSHOT_KEEPER_CONFIG", raising=False)
    monkeypatch.delenv("SNAPSHOT_KEEPER_POLICY__DRY_RUN", raising=False)
    monkeypatch.delenv("SNAPSHOT_KEEPER_AWS__REGION", raising=False)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "snapshot-keeper.yaml"
    path.write_text(SAMPLE_YAML)
    return path


class TestDefaults:
    """Tests for default configuration values."""

    def test_aws_defaults(self) -> None:
        """Test AWS defaults."""
        aws = AWSConfig()
        assert aws.region == "us-east-1"
        assert aws.profile is None
        assert aws.owner_id == "self"

    def test_notification_disabled_by_default(self) -> None:
        """Test that no topic is configured by default."""
        assert NotificationConfig().topic_arn is None

    def test_policy_defaults(self) -> None:
        """Test policy defaults."""
        policy = PolicyConfig()
        assert policy.timezone == "UTC"
        assert policy.week_start_index == 0
        assert policy.continue_on_error is False
        assert policy.dry_run is False

    def test_config_defaults(self) -> None:
        """Test empty configuration."""
        config = Config()
        assert config.volumes == []
        assert config.creation_schedules == {}
        assert config.logging.level == "INFO"


class TestPolicyValidation:
    """Tests for policy field validation."""

    def test_unknown_timezone_rejected(self) -> None:
        """Test that an unknown zone name fails validation."""
        with pytest.raises(ValidationError):
            PolicyConfig(timezone="Mars/Olympus")

    def test_week_start_case_insensitive(self) -> None:
        """Test week start normalization."""
        policy = PolicyConfig(week_start="Sunday")
        assert policy.week_start == "sunday"
        assert policy.week_start_index == 6

    def test_invalid_week_start(self) -> None:
        """Test that a bogus week start fails validation."""
        with pytest.raises(ValidationError):
            PolicyConfig(week_start="someday")

    def test_tzinfo(self) -> None:
        """Test that the zone object is built from the name."""
        assert PolicyConfig(timezone="Asia/Tokyo").tzinfo == ZoneInfo("Asia/Tokyo")


class TestYaml:
    """Tests for YAML loading and saving."""

    def test_from_yaml(self, config_file: Path) -> None:
        """Test loading every section from YAML."""
        config = Config.from_yaml(config_file)

        assert config.volumes == ["vol-1", "vol-2"]
        assert config.creation_schedules["*"] == CreationSchedule(days=1)
        assert config.creation_schedules["vol-2"] == CreationSchedule(hours=6)
        assert config.purge_schedules["*"] == PurgeSchedule(hours=24, days=7, weeks=4)
        assert config.aws.region == "eu-west-1"
        assert config.policy.week_start == "sunday"
        assert config.notification.topic_arn == "arn:aws:sns:eu-west-1:123:snapshots"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file raises ConfigurationError."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_yaml(tmp_path / "nope.yaml")

        assert exc_info.value.error_code == ErrorCode.CONFIG_MISSING

    def test_empty_file(self, tmp_path: Path) -> None:
        """Test that an empty file yields defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert Config.from_yaml(path).volumes == []

    def test_unparsable_yaml(self, tmp_path: Path) -> None:
        """Test that broken YAML raises ConfigurationError."""
        path = tmp_path / "broken.yaml"
        path.write_text("volumes: [vol-1\n")

        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_yaml(path)

        assert exc_info.value.error_code == ErrorCode.CONFIG_VALIDATION

    def test_non_mapping_document(self, tmp_path: Path) -> None:
        """Test that a top-level list raises ConfigurationError."""
        path = tmp_path / "list.yaml"
        path.write_text("- vol-1\n")

        with pytest.raises(ConfigurationError) as exc_info:
            Config.from_yaml(path)

        assert exc_info.value.context["value"] == "list"

    def test_unknown_schedule_field_rejected(self, tmp_path: Path) -> None:
        """Test that typos in schedule fields are not silently ignored."""
        path = tmp_path / "bad.yaml"
        path.write_text("creation_schedules:\n  '*':\n    dayz: 1\n")
        with pytest.raises(ValidationError):
            Config.from_yaml(path)

    def test_to_yaml_round_trip(self, config_file: Path, tmp_path: Path) -> None:
        """Test that a saved configuration loads back unchanged."""
        original = Config.from_yaml(config_file)
        out = tmp_path / "nested" / "saved.yaml"

        original.to_yaml(out)

        assert Config.from_yaml(out) == original


class TestLoad:
    """Tests for Config.load precedence."""

    def test_explicit_path(self, config_file: Path) -> None:
        """Test loading from an explicit path."""
        assert Config.load(str(config_file)).volumes == ["vol-1", "vol-2"]

    def test_env_path(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test loading from SNAPSHOT_KEEPER_CONFIG."""
        monkeypatch.setenv("SNAPSHOT_KEEPER_CONFIG", str(config_file))
        assert Config.load().aws.region == "eu-west-1"

    def test_candidate_file(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test discovery of snapshot-keeper.yaml in the working directory."""
        monkeypatch.chdir(config_file.parent)
        assert Config.load().volumes == ["vol-1", "vol-2"]

    def test_defaults_without_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test fallback to defaults."""
        monkeypatch.chdir(tmp_path)
        assert Config.load() == Config()

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test nested environment overrides."""
        monkeypatch.setenv("SNAPSHOT_KEEPER_POLICY__DRY_RUN", "true")
        monkeypatch.setenv("SNAPSHOT_KEEPER_AWS__REGION", "ap-northeast-1")

        config = Config()

        assert config.policy.dry_run is True
        assert config.aws.region == "ap-northeast-1"


class TestValidateSchedules:
    """Tests for Config.validate_schedules."""

    def test_valid(self, config_file: Path) -> None:
        """Test that wildcard entries cover every volume."""
        Config.from_yaml(config_file).validate_schedules()

    def test_no_volumes(self) -> None:
        """Test that an empty volume list is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            Config().validate_schedules()

        assert exc_info.value.error_code == ErrorCode.CONFIG_VALIDATION

    def test_duplicate_volumes(self) -> None:
        """Test that a volume listed twice is rejected."""
        config = Config(
            volumes=["vol-1", "vol-2", "vol-1"],
            creation_schedules={"*": {"days": 1}},
            purge_schedules={"*": {"days": 7}},
        )

        with pytest.raises(ConfigurationError) as exc_info:
            config.validate_schedules()

        assert exc_info.value.error_code == ErrorCode.CONFIG_VALIDATION
        assert exc_info.value.context["value"] == "['vol-1']"

    def test_missing_purge_schedule(self) -> None:
        """Test that a volume without a purge schedule is rejected."""
        config = Config(
            volumes=["vol-1", "vol-2"],
            creation_schedules={"*": {"days": 1}},
            purge_schedules={"vol-1": {"days": 7}},
        )

        with pytest.raises(ConfigurationError) as exc_info:
            config.validate_schedules()

        assert exc_info.value.error_code == ErrorCode.CONFIG_NO_SCHEDULE
        assert exc_info.value.context == {"volume_id": "vol-2", "schedule": "purge"}


class TestGlobalConfig:
    """Tests for the global configuration accessor."""

    def test_set_and_get(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that set_config replaces the global instance."""
        monkeypatch.setattr(config_module, "_config", None)
        config = Config(volumes=["vol-9"])

        set_config(config)

        assert get_config() is config
