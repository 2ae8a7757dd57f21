"""Plain-text rendering of SLO results.

This module provides utilities for:
- Formatting timestamps, minute counts and ratios.
- Rendering the SLI summary, the review queue and planner recommendations.
- Building the ``status`` report in text or JSON-ready form.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from .config import AppConfig
from .models import (
    BudgetRunSnapshot,
    PRWithDeadline,
    PTOInterval,
    ReviewItem,
    ReviewRecommendation,
    SLIResult,
)
from .storage import format_timestamp

WEEKDAY_NAMES = ["", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def format_minutes(minutes: Optional[float]) -> str:
    """Format a minute count as ``HH:MM``.

    Args:
        minutes: Duration in minutes; negative values keep their sign.

    Returns:
        ``"n/a"`` when ``minutes`` is ``None``; otherwise a rounded ``HH:MM`` string.
    """
    if minutes is None:
        return "n/a"

    total_minutes = int(round(minutes))
    sign = "-" if total_minutes < 0 else ""
    hours, remaining_minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{remaining_minutes:02d}"


def format_percent(ratio: float, digits: int = 2) -> str:
    return f"{ratio * 100:.{digits}f}%"


def render_sli(sli: SLIResult, target: float, window_days: int) -> str:
    """Render the SLI block shared by ``status`` and the error-budget command."""
    lines = [
        f"=== Current SLI ({window_days}-day rolling window) ===",
        f"Total business minutes: {sli.total_business_minutes}",
        f"Good minutes: {sli.good_minutes}",
        f"Bad minutes: {sli.bad_minutes}",
        f"SLI: {format_percent(sli.sli)}",
        f"Target: {format_percent(target, 0)}",
        f"Budget: {sli.budget_minutes:.0f} minutes ({format_minutes(sli.budget_minutes)})",
        f"Budget remaining: {sli.budget_remaining:.0f} minutes ({format_minutes(sli.budget_remaining)})",
        f"Status: {'SLO MET' if sli.is_met else 'SLO VIOLATED'}",
    ]
    return "\n".join(lines)


def _describe_item(item: ReviewItem) -> List[str]:
    code_owner_tag = " [code owner]" if item.as_code_owner else ""
    return [
        f"  Title: {item.title}",
        f"  Requested reviewer: {item.requested_reviewer or 'n/a'}{code_owner_tag}",
        f"  Requested: {format_timestamp(item.requested_at)}",
        f"  URL: {item.id}",
    ]


def render_queue(prs: Sequence[PRWithDeadline]) -> str:
    """Render the in-scope queue with bucket, deadline and overdue status."""
    if not prs:
        return "No PRs in queue."

    lines = ["=== PRs in Queue ==="]
    for pr in prs:
        status = "OVERDUE" if pr.is_overdue else "OK"
        lines.append(f"[{status}] {pr.item.id} ({pr.bucket}, {pr.item.size:g} LOC)")
        lines.extend(_describe_item(pr.item))
        lines.append(f"  Deadline: {format_timestamp(pr.deadline)}")
    return "\n".join(lines)


def render_logged_items(items: Sequence[ReviewItem], run_at: datetime) -> str:
    lines = [f"Logged {len(items)} PR(s) at {format_timestamp(run_at)}"]
    if items:
        lines.extend(["", "=== PRs Logged ==="])
        for item in items:
            lines.append(f"{item.id} ({item.size:g} LOC)")
            lines.extend(_describe_item(item))
    return "\n".join(lines)


def render_recommendation(recommendation: ReviewRecommendation, next_check_time: datetime) -> str:
    """Render planner output: budget position, must-do reviews and extra credit."""
    total_projected = recommendation.hist_bad_minutes + recommendation.projected_bad_minutes_if_no_reviews
    would_exceed = total_projected > recommendation.budget_minutes

    lines = [
        f"Next scheduled review time: {format_timestamp(next_check_time)}",
        "",
        "=== Review Recommendations ===",
        f"Historical bad minutes: {recommendation.hist_bad_minutes}",
        f"Budget: {recommendation.budget_minutes:.0f} minutes",
        f"Projected bad if no reviews: {recommendation.projected_bad_minutes_if_no_reviews} minutes",
        f"Total projected: {total_projected:.0f} minutes "
        f"({'WOULD EXCEED BUDGET' if would_exceed else 'within budget'})",
        "",
    ]

    if recommendation.must_do_today:
        lines.append("=== MUST REVIEW TODAY ===")
        for pr in recommendation.must_do_today:
            lines.append(f"{pr.item.id} ({pr.bucket}, {pr.item.size:g} LOC)")
            lines.append(f"  Title: {pr.item.title}")
            lines.append(f"  Deadline: {format_timestamp(pr.deadline)}")
    else:
        lines.append("No mandatory reviews today. You can skip reviewing until the next scheduled time.")

    if recommendation.extra_credit:
        lines.extend(["", "=== EXTRA CREDIT ==="])
        for extra in recommendation.extra_credit:
            pr = extra.pr
            lines.append(f"{pr.item.id} ({pr.bucket}, {pr.item.size:g} LOC)")
            lines.append(f"  Title: {pr.item.title}")
            lines.append(f"  Deadline: {format_timestamp(pr.deadline)}")
            lines.append(
                f"  Saves: {extra.saved_bad_minutes} minutes "
                f"({format_percent(extra.percent_of_remaining_budget, 1)} of remaining budget)"
            )

    if recommendation.deferrable:
        lines.extend(["", f"{len(recommendation.deferrable)} PR(s) can safely wait past the next review time."])

    return "\n".join(lines)


def status_as_dict(
    config: AppConfig,
    sli: SLIResult,
    window_start: datetime,
    window_end: datetime,
    budget_runs: Sequence[BudgetRunSnapshot],
    active_pto: Sequence[PTOInterval],
) -> Dict[str, Any]:
    """Build a JSON-serialisable status document."""
    last_run = budget_runs[-1] if budget_runs else None
    return {
        "githubUser": config.github_username,
        "window": {"start": format_timestamp(window_start), "end": format_timestamp(window_end)},
        "sli": {
            "totalBusinessMinutes": sli.total_business_minutes,
            "goodMinutes": sli.good_minutes,
            "badMinutes": sli.bad_minutes,
            "sli": sli.sli,
            "target": config.slo_target,
            "budgetMinutes": sli.budget_minutes,
            "budgetRemaining": sli.budget_remaining,
            "isMet": sli.is_met,
        },
        "budgetRuns": len(budget_runs),
        "lastRun": (
            {"runAt": format_timestamp(last_run.run_at), "prs": len(last_run.items)} if last_run else None
        ),
        "activePto": [{"start": pto.start.isoformat(), "end": pto.end.isoformat()} for pto in active_pto],
    }


def render_status(
    config: AppConfig,
    data_dir: str,
    sli: SLIResult,
    window_start: datetime,
    window_end: datetime,
    budget_runs: Sequence[BudgetRunSnapshot],
    active_pto: Sequence[PTOInterval],
) -> str:
    """Generate the human-readable ``status`` report."""
    lines = [
        "=== PR Review SLO Status ===",
        f"GitHub user: {config.github_username or '(not configured)'}",
        f"Data directory: {data_dir}",
        f"Total budget runs: {len(budget_runs)}",
        "",
        f"Window: {format_timestamp(window_start)} to {format_timestamp(window_end)}",
        render_sli(sli, config.slo_target, config.slo_window_days),
    ]

    if budget_runs:
        last_run = budget_runs[-1]
        lines.extend(
            [
                "",
                "=== Last Run ===",
                f"Time: {format_timestamp(last_run.run_at)}",
                f"PRs in queue: {len(last_run.items)}",
            ]
        )

    buckets = ", ".join(
        f"{rule.name} (<{rule.size_ceiling:g} LOC, {rule.allowed_days:g}d)" for rule in config.bucket_rules
    )
    lines.extend(
        [
            "",
            "=== Configuration ===",
            f"Business hours: {config.business_start_hour}:00-{config.business_end_hour}:00 ({config.timezone})",
            f"Business days: {', '.join(WEEKDAY_NAMES[day] for day in config.business_days)}",
            f"Holiday region: {config.holiday_country_code}",
            f"Buckets: {buckets or '(none)'}",
        ]
    )

    if active_pto:
        lines.extend(["", "=== Active/Future PTO ==="])
        lines.extend(f"  {pto.start.isoformat()} to {pto.end.isoformat()}" for pto in active_pto)

    return "\n".join(lines)
