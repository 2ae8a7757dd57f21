"""Application orchestration for the PR review SLO tracker."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .business_time import BusinessCalendar
from .cli import parse_args
from .config import (
    AppConfig,
    DataPaths,
    build_calendar,
    load_config,
    load_github_token,
    save_default_config,
)
from .deadlines import compute_deadlines, get_min_deadline
from .errors import (
    ApiError,
    AuthenticationError,
    ConfigurationError,
    InvalidInputError,
    StorageError,
)
from .github_client import GitHubClient
from .holidays import HolidayClient
from .models import BudgetRunSnapshot, PTOInterval, ReviewItem
from .planner import recommend
from .report import (
    render_logged_items,
    render_queue,
    render_recommendation,
    render_sli,
    render_status,
    status_as_dict,
)
from .sli import compute_sli
from .storage import (
    JsonlLog,
    active_pto_intervals,
    append_budget_run,
    append_pto,
    format_timestamp,
    load_budget_runs,
    load_pto_intervals,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIGURATION = 2
EXIT_AUTHENTICATION = 3
EXIT_API = 4
EXIT_STORAGE = 5

# Days of look-ahead so that deadlines up to the next review session see holidays.
PLANNING_HORIZON_DAYS = 14


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_calendar(
    config: AppConfig,
    paths: DataPaths,
    start: datetime,
    end: datetime,
    items: Iterable[ReviewItem] = (),
) -> BusinessCalendar:
    """Build the calendar with PTO and holidays covering ``[start, end]`` and every item's request."""
    earliest = min([start, *(item.requested_at for item in items)])
    pto_intervals = load_pto_intervals(JsonlLog(paths.pto_file))
    holidays = HolidayClient(paths).holidays_for_range(
        (earliest - timedelta(days=1)).date(),
        (end + timedelta(days=1)).date(),
        config.holiday_country_code,
    )
    return build_calendar(config, holidays, pto_intervals)


def _fetch_review_items(config: AppConfig) -> List[ReviewItem]:
    client = GitHubClient(token=load_github_token())
    print("Fetching PRs requesting review...")
    items = client.fetch_review_items(config.github_username, config.github_repos)
    print(f"Found {len(items)} PR(s) requesting review.")
    return items


def _record_run(paths: DataPaths, items: Sequence[ReviewItem], now: datetime) -> BudgetRunSnapshot:
    snapshot = BudgetRunSnapshot(run_at=now, items=tuple(items))
    append_budget_run(JsonlLog(paths.budget_runs_file), snapshot)
    return snapshot


def run_init(args: argparse.Namespace, paths: DataPaths, now: datetime) -> int:
    config_file = save_default_config(paths, args.username)
    print(f"Initialized pr-review-slo for GitHub user: {args.username}")
    print(f"Configuration saved to: {config_file}")
    print("")
    print("Next steps:")
    print("1. Ensure GITHUB_TOKEN is set in your environment.")
    print(f"2. Edit the config file to customize settings: {config_file}")
    print("3. Record your queue regularly: pr-review-slo compute-error-budget-contribution")
    print("4. Get review recommendations: pr-review-slo get-prs-to-review")
    return EXIT_OK


def run_log_review_requests(args: argparse.Namespace, paths: DataPaths, now: datetime) -> int:
    config = load_config(paths)
    items = _fetch_review_items(config)
    _record_run(paths, items, now)
    print(render_logged_items(items, now))
    return EXIT_OK


def run_compute_error_budget(args: argparse.Namespace, paths: DataPaths, now: datetime) -> int:
    config = load_config(paths)
    items = _fetch_review_items(config)
    _record_run(paths, items, now)

    budget_runs = load_budget_runs(JsonlLog(paths.budget_runs_file))
    window_start = now - timedelta(days=config.slo_window_days)
    history_items = [item for run in budget_runs for item in run.items]
    calendar = _load_calendar(
        config, paths, window_start, now + timedelta(days=PLANNING_HORIZON_DAYS), history_items
    )

    prs = compute_deadlines(items, config.bucket_rules, calendar, now)
    print(f"{len(prs)} PR(s) in scope for SLO tracking.")
    excluded = len(items) - len(prs)
    if excluded:
        print(f"{excluded} PR(s) logged but excluded from SLO computation.")

    sli = compute_sli(budget_runs, window_start, now, calendar, config.bucket_rules, config.slo_target)

    min_deadline = get_min_deadline(prs)
    print("")
    print("=== Run Info ===")
    print(f"Run time: {format_timestamp(now)}")
    if min_deadline is not None and min_deadline < now:
        print(f"Overdue since: {format_timestamp(min_deadline)}")
    else:
        print("No overdue PRs.")
    print("")
    print(render_sli(sli, config.slo_target, config.slo_window_days))
    print("")
    print(render_queue(prs))
    return EXIT_OK


def run_get_prs_to_review(args: argparse.Namespace, paths: DataPaths, now: datetime) -> int:
    config = load_config(paths)
    window_days = args.window_days or config.slo_window_days
    items = _fetch_review_items(config)
    if not items:
        print("No PRs to review. Queue is clear!")
        return EXIT_OK

    budget_runs = load_budget_runs(JsonlLog(paths.budget_runs_file))
    history_items = [item for run in budget_runs for item in run.items]
    calendar = _load_calendar(
        config,
        paths,
        now - timedelta(days=window_days + 1),
        now + timedelta(days=PLANNING_HORIZON_DAYS),
        [*items, *history_items],
    )

    prs = compute_deadlines(items, config.bucket_rules, calendar, now)
    print(f"{len(prs)} PR(s) in scope (excluding oversized PRs).")
    if not prs:
        print("All PRs are excluded from the SLO. No action required.")
        return EXIT_OK

    next_review_time = calendar.get_next_review_time(now, args.review_hour)
    recommendation = recommend(
        prs,
        budget_runs,
        now,
        next_review_time,
        calendar,
        config.bucket_rules,
        config.slo_target,
        window_days,
    )
    print("")
    print(render_recommendation(recommendation, next_review_time))
    return EXIT_OK


def run_add_pto(args: argparse.Namespace, paths: DataPaths, now: datetime) -> int:
    if args.from_date > args.to_date:
        raise InvalidInputError(
            f"Invalid date range: --from ({args.from_date.isoformat()}) must not be after --to ({args.to_date.isoformat()})"
        )

    log = JsonlLog(paths.pto_file)
    append_pto(log, PTOInterval(start=args.from_date, end=args.to_date, added_at=now))
    print(f"Added PTO interval: {args.from_date.isoformat()} to {args.to_date.isoformat()}")

    active = active_pto_intervals(load_pto_intervals(log), now.date())
    if active:
        print("")
        print("Active/Future PTO intervals:")
        for pto in active:
            print(f"  {pto.start.isoformat()} to {pto.end.isoformat()}")
    return EXIT_OK


def run_list_pto(args: argparse.Namespace, paths: DataPaths, now: datetime) -> int:
    intervals = load_pto_intervals(JsonlLog(paths.pto_file))
    if not intervals:
        print("No PTO intervals recorded.")
        return EXIT_OK

    today = now.date()
    print("All PTO intervals:")
    for pto in intervals:
        status = "(past)" if pto.end < today else "(active/future)"
        print(f"  {pto.start.isoformat()} to {pto.end.isoformat()} {status}")
    return EXIT_OK


def run_status(args: argparse.Namespace, paths: DataPaths, now: datetime) -> int:
    config = load_config(paths)
    budget_runs = load_budget_runs(JsonlLog(paths.budget_runs_file))
    window_start = now - timedelta(days=config.slo_window_days)
    history_items = [item for run in budget_runs for item in run.items]
    calendar = _load_calendar(config, paths, window_start, now, history_items)

    sli = compute_sli(budget_runs, window_start, now, calendar, config.bucket_rules, config.slo_target)
    active_pto = active_pto_intervals(calendar.config.pto_intervals, now.date())

    if args.json:
        print(json.dumps(status_as_dict(config, sli, window_start, now, budget_runs, active_pto), indent=2))
    else:
        print(render_status(config, str(paths.data_dir), sli, window_start, now, budget_runs, active_pto))
    return EXIT_OK


COMMANDS: Dict[str, Callable[[argparse.Namespace, DataPaths, datetime], int]] = {
    "init": run_init,
    "log-review-requests": run_log_review_requests,
    "compute-error-budget-contribution": run_compute_error_budget,
    "get-prs-to-review": run_get_prs_to_review,
    "add-pto": run_add_pto,
    "list-pto": run_list_pto,
    "status": run_status,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run one command and map failures to process exit codes.

    Returns:
        ``0`` on success, ``2`` for configuration or input errors, ``3`` for
        authentication errors, ``4`` for API errors, ``5`` for storage errors
        and ``1`` for anything unexpected.
    """
    try:
        args = parse_args(argv)
        _configure_logging(args.verbose)
        paths = DataPaths.from_env(args.data_dir)
        return COMMANDS[args.command](args, paths, _utcnow())
    except (ConfigurationError, InvalidInputError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except AuthenticationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_AUTHENTICATION
    except ApiError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_API
    except StorageError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_STORAGE
    except Exception as exc:
        logger.exception("Unexpected error")
        print(f"ERROR: Unexpected failure: {exc}", file=sys.stderr)
        return EXIT_UNEXPECTED


if __name__ == "__main__":
    raise SystemExit(main())
