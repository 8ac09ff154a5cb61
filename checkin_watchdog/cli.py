"""
checkin-watchdog CLI

Command-line interface for computing and applying the check-in watchdog.

Usage:
    # Show the watchdog minutes for this node
    checkin-watchdog offsets

    # Minutes for an explicit identity
    checkin-watchdog offsets --minute-base foo

    # Threshold for a 10 minute budget
    checkin-watchdog threshold --maxruntime 10

    # Print the generated script
    checkin-watchdog render --maxruntime 10

    # Install script and cron entry (preview first)
    checkin-watchdog apply --dry-run
    checkin-watchdog apply

    # Create the coordinator service account
    checkin-watchdog provision
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from checkin_watchdog.config import WatchdogConfig
from checkin_watchdog.core.logging_config import (
    configure_third_party_loggers,
    get_logger,
    setup_logging,
)
from checkin_watchdog.deploy import apply, build_generator, build_scheduler
from checkin_watchdog.errors import CheckinWatchdogError
from checkin_watchdog.facts import NodeFacts
from checkin_watchdog.provisioning import CoordinatorBaseline

logger = get_logger("checkin_watchdog.cli")


def add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add arguments shared by every subcommand."""
    parser.add_argument(
        "--config", default=None,
        help="YAML settings file (default: /etc/checkin-watchdog/config.yaml if present)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    parser.add_argument("--json", action="store_true", help="Machine-readable output")


def _load_config(args: argparse.Namespace) -> WatchdogConfig:
    config = WatchdogConfig.load(args.config)
    overrides: dict[str, Any] = {}
    for name in ("minute_base", "maxruntime", "config_timeout", "interval", "script_path"):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    if not overrides:
        return config
    data = config.to_dict()
    data.update(overrides)
    return WatchdogConfig.from_dict(data)


def _emit(args: argparse.Namespace, payload: dict[str, Any], text: str) -> None:
    if args.json:
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        print(text)


def cmd_offsets(args: argparse.Namespace) -> int:
    """Print the watchdog minutes."""
    config = _load_config(args)
    facts = NodeFacts(fqdn=args.identity) if args.identity else None
    scheduler = build_scheduler(config, facts)
    schedule = scheduler.schedule(config.minute_base, minute=config.minute)
    _emit(
        args,
        {
            "identity": scheduler.resolve_identity(config.minute_base),
            **schedule.cron_fields(),
        },
        schedule.cron_expression(),
    )
    return 0


def cmd_threshold(args: argparse.Namespace) -> int:
    """Print the stale-process threshold in seconds."""
    config = _load_config(args)
    threshold = build_generator(config).threshold(config.effective_maxruntime)
    _emit(
        args,
        {
            "maxruntime": config.effective_maxruntime,
            "config_timeout": config.config_timeout,
            "threshold_seconds": threshold,
        },
        str(threshold),
    )
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    """Print the generated watchdog script."""
    config = _load_config(args)
    script = build_generator(config).render(config.effective_maxruntime)
    if args.json:
        _emit(args, {"script_path": config.script_path, "script": script}, script)
    else:
        sys.stdout.write(script)
    return 0


def cmd_apply(args: argparse.Namespace) -> int:
    """Install the script and cron entry on this node."""
    config = _load_config(args)
    result = apply(config, dry_run=args.dry_run)
    lines = [
        f"identity:  {result.identity}",
        f"schedule:  {result.schedule.cron_expression()}",
        f"threshold: {result.threshold_seconds}s",
    ]
    lines.extend(result.messages or ["no changes"])
    _emit(args, result.to_dict(), "\n".join(lines))
    return 0


def cmd_provision(args: argparse.Namespace) -> int:
    """Create the coordinator's service user and group."""
    config = _load_config(args)
    baseline = CoordinatorBaseline(
        user=args.user or config.service_user,
        group=args.group or config.service_group,
    )
    result = baseline.ensure(dry_run=args.dry_run)
    _emit(
        args,
        {
            "user": baseline.user,
            "group": baseline.group,
            "group_created": result.group_created,
            "user_created": result.user_created,
            "actions": result.actions,
            "dry_run": args.dry_run,
        },
        "\n".join(result.actions) or "no changes",
    )
    return 0


COMMANDS = {
    "offsets": cmd_offsets,
    "threshold": cmd_threshold,
    "render": cmd_render,
    "apply": cmd_apply,
    "provision": cmd_provision,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="checkin-watchdog",
        description="Check-in agent watchdog scheduler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  offsets    Show the minutes the watchdog runs at
  threshold  Show the stale-run threshold in seconds
  render     Print the generated watchdog script
  apply      Install the watchdog script and cron entry
  provision  Create the coordinator service account

Examples:
  %(prog)s offsets --minute-base foo
  %(prog)s threshold --maxruntime 10 --json
  %(prog)s apply --dry-run
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    offsets_parser = subparsers.add_parser("offsets", help="Show watchdog minutes")
    offsets_parser.add_argument("--minute-base", help="Identity to hash instead of the node's")
    offsets_parser.add_argument("--identity", help="Override the detected node identity")
    add_common_args(offsets_parser)

    for name, help_text in (
        ("threshold", "Show stale-run threshold"),
        ("render", "Print the watchdog script"),
        ("apply", "Install script and cron entry"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--maxruntime", type=int, help="Allowed check-in runtime in minutes")
        sub.add_argument("--interval", type=int, help="Check-in cycle length in minutes")
        sub.add_argument(
            "--config-timeout", type=int,
            help="System minimum check-in timeout in seconds",
        )
        if name == "apply":
            sub.add_argument("--minute-base", help="Identity to hash instead of the node's")
            sub.add_argument("--script-path", help="Where to install the watchdog script")
            sub.add_argument("--dry-run", action="store_true", help="Show changes only")
        add_common_args(sub)

    provision_parser = subparsers.add_parser("provision", help="Create service account")
    provision_parser.add_argument("--user", help="Service user name")
    provision_parser.add_argument("--group", help="Service group name")
    provision_parser.add_argument("--dry-run", action="store_true", help="Show changes only")
    add_common_args(provision_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging("checkin_watchdog", level="DEBUG" if args.verbose else "INFO")
    configure_third_party_loggers()

    try:
        return COMMANDS[args.command](args)
    except CheckinWatchdogError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
