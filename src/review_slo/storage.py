"""Append-only JSON-lines storage for budget runs and PTO intervals.

Records are only ever appended; reading folds the whole file back into an
ordered, in-memory sequence that the SLO computations consume.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .errors import InvalidInputError, StorageError
from .models import BudgetRunSnapshot, PTOInterval, ReviewItem

logger = logging.getLogger(__name__)


class JsonlLog:
    """Ordered, append-only log of JSON records stored one per line."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: Dict[str, Any]) -> None:
        """Append one record to the end of the log."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record) + "\n")
        except OSError as exc:
            raise StorageError(f"Could not append to {self._path}: {exc}") from exc

    def read_all(self) -> List[Dict[str, Any]]:
        """Return every record in file order; an absent file is an empty log."""
        if not self._path.exists():
            return []

        records: List[Dict[str, Any]] = []
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                for line_number, line in enumerate(handle, start=1):
                    if not line.strip():
                        continue
                    try:
                        records.append(json.loads(line))
                    except json.JSONDecodeError as exc:
                        raise StorageError(f"Corrupt record in {self._path} at line {line_number}.") from exc
        except OSError as exc:
            raise StorageError(f"Could not read {self._path}: {exc}") from exc

        return records


def format_timestamp(value: datetime) -> str:
    """Format a datetime as UTC ISO8601 with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse ISO8601 timestamps into timezone-aware datetimes (naive values are UTC)."""
    if not value:
        return None

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def snapshot_to_record(snapshot: BudgetRunSnapshot) -> Dict[str, Any]:
    return {
        "type": "budget_run",
        "runAt": format_timestamp(snapshot.run_at),
        "prs": [
            {
                "url": item.id,
                "title": item.title,
                "requestedAt": format_timestamp(item.requested_at),
                "loc": item.size,
                "reviewedAt": format_timestamp(item.resolved_at) if item.resolved_at else None,
                "requestedReviewer": item.requested_reviewer,
                "asCodeOwner": item.as_code_owner,
            }
            for item in snapshot.items
        ],
    }


def snapshot_from_record(record: Dict[str, Any]) -> BudgetRunSnapshot:
    """Rebuild a snapshot from its stored record.

    Raises:
        InvalidInputError: If required fields are missing or malformed.
    """
    try:
        run_at = parse_timestamp(record["runAt"])
        items = tuple(
            ReviewItem(
                id=str(pr["url"]),
                title=str(pr.get("title", "")),
                requested_at=parse_timestamp(pr.get("requestedAt")),
                size=pr.get("loc"),
                resolved_at=parse_timestamp(pr.get("reviewedAt")),
                requested_reviewer=str(pr.get("requestedReviewer") or ""),
                as_code_owner=bool(pr.get("asCodeOwner", False)),
            )
            for pr in record.get("prs", [])
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidInputError(f"Malformed budget run record: {record!r}") from exc

    if run_at is None:
        raise InvalidInputError(f"Budget run record is missing 'runAt': {record!r}")
    return BudgetRunSnapshot(run_at=run_at, items=items)


def append_budget_run(log: JsonlLog, snapshot: BudgetRunSnapshot) -> None:
    log.append(snapshot_to_record(snapshot))
    logger.info(
        "Appended budget run",
        extra={"path": str(log.path), "run_at": format_timestamp(snapshot.run_at), "items": len(snapshot.items)},
    )


def load_budget_runs(log: JsonlLog) -> List[BudgetRunSnapshot]:
    """Load all budget runs sorted by run time, ignoring non-run records."""
    snapshots = [snapshot_from_record(record) for record in log.read_all() if record.get("type") == "budget_run"]
    return sorted(snapshots, key=lambda snapshot: snapshot.run_at)


def pto_to_record(pto: PTOInterval) -> Dict[str, Any]:
    return {
        "type": "pto",
        "start": pto.start.isoformat(),
        "end": pto.end.isoformat(),
        "addedAt": format_timestamp(pto.added_at) if pto.added_at else None,
    }


def pto_from_record(record: Dict[str, Any]) -> PTOInterval:
    try:
        return PTOInterval(
            start=date.fromisoformat(record["start"]),
            end=date.fromisoformat(record["end"]),
            added_at=parse_timestamp(record.get("addedAt")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidInputError(f"Malformed PTO record: {record!r}") from exc


def append_pto(log: JsonlLog, pto: PTOInterval) -> None:
    log.append(pto_to_record(pto))


def load_pto_intervals(log: JsonlLog) -> List[PTOInterval]:
    return [pto_from_record(record) for record in log.read_all() if record.get("type") == "pto"]


def active_pto_intervals(intervals: Iterable[PTOInterval], today: date) -> List[PTOInterval]:
    """Return intervals that have not ended before ``today``."""
    return [pto for pto in intervals if pto.end >= today]
