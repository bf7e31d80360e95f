"""Command line entry point for notiqueue."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence

import yaml

from .config import NotiQueueConfig
from .config_loader import load_config
from .errors import NotiQueueError
from .platforms import HttpDeliveryPlatform
from .records import LocalNotification
from .services import NotificationScheduler
from .storage import JsonFileQueueStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="notiqueue helper CLI")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the log level from the configuration file",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    schedule = sub.add_parser("schedule", help="Schedule notifications from a YAML file")
    _add_config_argument(schedule)
    schedule.add_argument(
        "--file",
        type=Path,
        required=True,
        help="YAML file holding a list of notifications",
    )

    reconcile = sub.add_parser(
        "reconcile",
        help="Detect fired notifications and refill the platform from the queue",
    )
    _add_config_argument(reconcile)

    status = sub.add_parser("status", help="Print every tracked notification")
    _add_config_argument(status)
    status.add_argument(
        "--brief",
        action="store_true",
        help="One line per notification",
    )

    cancel = sub.add_parser("cancel", help="Cancel a notification by identifier")
    _add_config_argument(cancel)
    cancel.add_argument("notification_id", help="Identifier returned by 'schedule'")

    cancel_all = sub.add_parser("cancel-all", help="Cancel every tracked notification")
    _add_config_argument(cancel_all)

    return parser


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to the YAML configuration file",
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    commands: Dict[str, Callable[[NotificationScheduler, argparse.Namespace], Any]] = {
        "schedule": _command_schedule,
        "reconcile": _command_reconcile,
        "status": _command_status,
        "cancel": _command_cancel,
        "cancel-all": _command_cancel_all,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.error("unknown command")
        return 1

    try:
        config = load_config(args.config)
    except (OSError, KeyError, ValueError, yaml.YAMLError) as exc:
        print(f"Invalid configuration {args.config}: {exc}", file=sys.stderr)
        return 1
    _configure_logging(args.log_level or config.logging.level)

    try:
        with HttpDeliveryPlatform(config.platform) as platform:
            scheduler = _build_scheduler(config, platform)
            output = handler(scheduler, args)
            scheduler.save_queue()
    except (NotiQueueError, OSError, KeyError, TypeError, ValueError, yaml.YAMLError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1

    if isinstance(output, str):
        print(output)
    else:
        print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _build_scheduler(config: NotiQueueConfig, platform: HttpDeliveryPlatform) -> NotificationScheduler:
    return NotificationScheduler(
        platform=platform,
        store=JsonFileQueueStore(config.scheduler.queue_path),
        capacity=config.scheduler.capacity,
    )


def _command_schedule(scheduler: NotificationScheduler, args: argparse.Namespace) -> Dict[str, Any]:
    records = _load_notifications(args.file)
    scheduler.reconcile()
    identifiers = scheduler.schedule_many(records)
    return {
        "scheduled": identifiers,
        "admitted": scheduler.admitted_count,
        "queued": scheduler.queued_count,
    }


def _command_reconcile(scheduler: NotificationScheduler, args: argparse.Namespace) -> Dict[str, Any]:
    report = scheduler.reconcile()
    output = report.to_dict()
    output["admitted_count"] = scheduler.admitted_count
    output["queued_count"] = scheduler.queued_count
    return output


def _command_status(scheduler: NotificationScheduler, args: argparse.Namespace) -> str:
    scheduler.reconcile()
    return scheduler.describe(brief=args.brief)


def _command_cancel(scheduler: NotificationScheduler, args: argparse.Namespace) -> Dict[str, Any]:
    scheduler.reconcile()
    cancelled = scheduler.cancel_by_identifier(args.notification_id)
    return {"notification_id": args.notification_id, "cancelled": cancelled}


def _command_cancel_all(scheduler: NotificationScheduler, args: argparse.Namespace) -> Dict[str, Any]:
    scheduler.reconcile()
    total = scheduler.total_count
    scheduler.cancel_all()
    return {"cancelled": total}


def _load_notifications(path: Path) -> List[LocalNotification]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or []
    if isinstance(data, dict):
        data = data.get("notifications", [])
    if not isinstance(data, list):
        raise ValueError("notification file must contain a list")
    return [LocalNotification.from_dict(entry) for entry in data]


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
