"""
Command-line entry point.

Usage:
  snapshot-keeper --config snapshot-keeper.yaml --dry-run
"""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence
from datetime import datetime, timezone

from pydantic import ValidationError

from snapshot_keeper.aws import EC2SnapshotClient, SNSNotifier
from snapshot_keeper.config import Config, set_config
from snapshot_keeper.engine import LifecycleOrchestrator, RunResult
from snapshot_keeper.exceptions import ApiError, ConfigurationError, VolumeNotFoundError
from snapshot_keeper.logging import get_logger, setup_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_RUN_ERRORS = 1
EXIT_CONFIG_ERROR = 2
EXIT_API_ERROR = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snapshot-keeper",
        description="Create and prune EBS snapshots according to tiered schedules.",
    )
    parser.add_argument("--config", help="Path to the YAML configuration file")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Plan creations and deletions without executing them",
    )
    parser.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Skip volumes that fail lookup or creation instead of aborting",
    )
    parser.add_argument("--log-level", help="Override the configured log level")
    parser.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Format of the run summary printed on stdout",
    )
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Load configuration and apply command-line overrides."""
    config = Config.load(args.config)

    policy_overrides: dict[str, bool] = {}
    if args.dry_run:
        policy_overrides["dry_run"] = True
    if args.continue_on_error:
        policy_overrides["continue_on_error"] = True
    if policy_overrides:
        config = config.model_copy(
            update={"policy": config.policy.model_copy(update=policy_overrides)}
        )

    config.validate_schedules()
    return config


def build_orchestrator(config: Config) -> LifecycleOrchestrator:
    """Wire the AWS collaborators into an orchestrator."""
    return LifecycleOrchestrator(
        EC2SnapshotClient.from_config(config),
        SNSNotifier.from_config(config),
        tz=config.policy.tzinfo,
        week_start=config.policy.week_start_index,
        continue_on_error=config.policy.continue_on_error,
        dry_run=config.policy.dry_run,
        description_template=config.policy.description_template,
        subject=config.notification.subject,
    )


def render(result: RunResult, output: str) -> str:
    if output == "json":
        return json.dumps(result.to_dict(), indent=2)
    return result.summary_text()


def main(argv: Sequence[str] | None = None) -> int:
    """Run one lifecycle pass and return the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except (ConfigurationError, ValidationError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    set_config(config)
    setup_logging(level=args.log_level)

    now = datetime.now(timezone.utc)
    orchestrator = build_orchestrator(config)

    try:
        result = orchestrator.run(
            now,
            config.volumes,
            config.creation_schedules,
            config.purge_schedules,
        )
    except ConfigurationError as e:
        logger.error("run_aborted", **e.to_dict())
        return EXIT_CONFIG_ERROR
    except (VolumeNotFoundError, ApiError) as e:
        logger.error("run_aborted", **e.to_dict())
        return EXIT_API_ERROR

    print(render(result, args.output))
    return EXIT_OK if result.success else EXIT_RUN_ERRORS


if __name__ == "__main__":
    sys.exit(main())
