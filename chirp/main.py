from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

import yaml

from chirp.lib.digest import DigestError
from chirp.lib.logging_utils import setup_debug_logging
from chirp.lib.notifications import NotificationSink
from chirp.lib.setup import initialize_environment


PROJECT_ROOT = Path(__file__).resolve().parent
_config_override = os.getenv("CHIRP_CONFIG")
CONFIG_PATH = Path(_config_override) if _config_override else PROJECT_ROOT / "config.yaml"


def run_daily_digest(
    config_path: Path,
    *,
    now: Optional[datetime] = None,
    dry_run: bool = False,
    sink: Optional[NotificationSink] = None,
) -> int:
    """
    Build yesterday's digest once and either print it or send it.

    Returns a process exit code: 0 when every send succeeded (or on a dry
    run), 1 when at least one recipient failed, 2 when the digest could not
    be computed.
    """
    debug_logger = setup_debug_logging(config_path.parent)
    config_data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    environment = initialize_environment(config_data, base_dir=config_path.parent, sink=sink)
    try:
        if dry_run:
            summary = environment.service.build_digest(now)
            print(json.dumps(summary.to_dict(), indent=2))
            return 0

        outcome = environment.service.send_daily_summary(now)
        if outcome.requested == 0:
            print("No active subscribers.")
            return 0
        report = outcome.report
        print(
            f"Daily summary: {report.succeeded} sent, {report.failed} failed, "
            f"{report.cancelled} cancelled (of {outcome.requested})."
        )
        for failure in report.failures:
            print(f"    {failure.recipient}: {failure.error}")
        return 1 if report.failed or report.cancelled else 0
    except DigestError as exc:
        debug_logger.exception("cli.digest_error")
        print(f"Digest failed: {exc}", file=sys.stderr)
        return 2
    finally:
        environment.close()


def _parse_now(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid ISO timestamp: {value}") from exc


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ChirpChirp daily digest sender.")
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help="Path to config.yaml (defaults to $CHIRP_CONFIG or the bundled config).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    digest = subparsers.add_parser("digest", help="Build yesterday's digest and email it once.")
    digest.add_argument(
        "--now",
        type=_parse_now,
        default=None,
        help="Reference instant (ISO 8601); the digest covers the local day before it.",
    )
    digest.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the digest as JSON instead of emailing subscribers.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    if args.command == "digest":
        return run_daily_digest(args.config, now=args.now, dry_run=args.dry_run)
    return 2


if __name__ == "__main__":
    sys.exit(main())
