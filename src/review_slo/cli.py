"""Command-line argument parsing for the PR review SLO tracker."""

from __future__ import annotations

import argparse
from datetime import date
from typing import Optional, Sequence


def _positive_int(value: str) -> int:
    """Parse and validate a positive integer CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive integer.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")

    return parsed


def _hour_of_day(value: str) -> int:
    """Parse an hour of the day in the range 0-23."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if not 0 <= parsed <= 23:
        raise argparse.ArgumentTypeError("must be between 0 and 23")

    return parsed


def _iso_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` date."""
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"invalid date '{value}': expected YYYY-MM-DD (e.g., 2025-12-25)"
        ) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pr-review-slo",
        description="Track your pull-request review responsiveness SLO.",
        epilog="Environment: GITHUB_TOKEN (required for GitHub API calls), PR_REVIEW_SLO_HOME (data directory).",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory holding config.toml and the append-only logs (default: ~/.pr-review-slo).",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True, metavar="<command>")

    init_parser = subparsers.add_parser("init", help="Initialize configuration for a GitHub user.")
    init_parser.add_argument("username", help="GitHub username whose review requests are tracked.")

    subparsers.add_parser(
        "log-review-requests",
        help="Record the current review queue without computing the SLI.",
    )
    subparsers.add_parser(
        "compute-error-budget-contribution",
        help="Record the current review queue and report the error budget.",
    )

    review_parser = subparsers.add_parser("get-prs-to-review", help="Recommend which PRs to review now.")
    review_parser.add_argument(
        "--review-hour",
        type=_hour_of_day,
        default=12,
        help="Local hour of your next scheduled review session (default: 12).",
    )
    review_parser.add_argument(
        "--window-days",
        type=_positive_int,
        default=None,
        help="Override the configured SLO window in days.",
    )

    pto_parser = subparsers.add_parser("add-pto", help="Add a PTO interval (inclusive dates).")
    pto_parser.add_argument("--from", dest="from_date", type=_iso_date, required=True, help="First PTO day.")
    pto_parser.add_argument("--to", dest="to_date", type=_iso_date, required=True, help="Last PTO day.")

    subparsers.add_parser("list-pto", help="List all PTO intervals.")

    status_parser = subparsers.add_parser("status", help="Show current SLO status and configuration.")
    status_parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON.")

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed CLI arguments; ``command`` names the selected sub-command.
    """
    return build_parser().parse_args(argv)
