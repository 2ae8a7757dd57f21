"""Public holiday retrieval with a per-year JSON cache."""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Set

import requests

from .config import DataPaths
from .errors import ApiError
from .models import Holiday

logger = logging.getLogger(__name__)


class HolidayClient:
    """Client for the Nager.Date public holiday API."""

    _BASE_URL = "https://date.nager.at/api/v3/PublicHolidays"

    def __init__(
        self,
        paths: DataPaths,
        session: Optional[requests.Session] = None,
        timeout_seconds: int = 30,
    ) -> None:
        self._paths = paths
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        self._timeout_seconds = timeout_seconds

    def _read_cache(self, year: int, country_code: str) -> Optional[List[Dict[str, Any]]]:
        cache_file = self._paths.holiday_cache_file(year)
        if not cache_file.exists():
            return None

        try:
            cached = json.loads(cache_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.debug("Ignoring unreadable holiday cache", extra={"path": str(cache_file)})
            return None

        if not isinstance(cached, dict) or not isinstance(cached.get("holidays", []), list):
            logger.debug("Ignoring malformed holiday cache", extra={"path": str(cache_file)})
            return None

        if cached.get("countryCode") != country_code:
            return None
        return cached.get("holidays", [])

    def _write_cache(self, year: int, country_code: str, holidays: List[Dict[str, Any]]) -> None:
        cache_file = self._paths.holiday_cache_file(year)
        try:
            self._paths.ensure()
            cache_file.write_text(
                json.dumps({"countryCode": country_code, "holidays": holidays}, indent=2),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("Could not write holiday cache %s: %s", cache_file, exc)

    def _fetch_raw(self, year: int, country_code: str) -> List[Dict[str, Any]]:
        url = f"{self._BASE_URL}/{year}/{country_code}"
        try:
            response = self._session.get(url, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            raise ApiError(f"Holiday request failed: GET {url}") from exc

        if response.status_code >= 400:
            raise ApiError(f"Holiday API request failed: GET {url} returned {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiError(f"Holiday API returned invalid JSON: GET {url}") from exc

        if not isinstance(payload, list):
            raise ApiError(f"Holiday API returned unexpected payload shape: GET {url}")

        return [
            {
                "date": item.get("date"),
                "name": item.get("name", ""),
                "countryCode": item.get("countryCode", country_code),
                "counties": item.get("counties") or [],
            }
            for item in payload
            if item.get("date")
        ]

    def fetch_holidays(self, year: int, region_code: str) -> List[Holiday]:
        """Return holidays for ``year`` observed in ``region_code`` (``US``, ``GB-ENG``, ...).

        Raises:
            ApiError: If the API request fails or returns an unexpected payload.
        """
        country_code = region_code.split("-")[0].upper()
        raw = self._read_cache(year, country_code)
        if raw is None:
            raw = self._fetch_raw(year, country_code)
            self._write_cache(year, country_code, raw)

        holidays = [
            Holiday(
                date=date.fromisoformat(item["date"]),
                name=str(item.get("name", "")),
                country_code=str(item.get("countryCode", country_code)),
                counties=tuple(item.get("counties") or ()),
            )
            for item in raw
        ]
        return [holiday for holiday in holidays if holiday.applies_to(region_code)]

    def holidays_for_range(self, start: date, end: date, region_code: str) -> Set[date]:
        """Collect holiday dates for every year touched by ``[start, end]``.

        Years that cannot be fetched are skipped with a warning so that SLO
        computation still works without holiday data.
        """
        dates: Set[date] = set()
        for year in range(start.year, end.year + 1):
            try:
                holidays = self.fetch_holidays(year, region_code)
            except ApiError as exc:
                logger.warning("Could not fetch holidays for %s (%s): %s", year, region_code, exc)
                continue
            dates.update(holiday.date for holiday in holidays)

        logger.info(
            "Loaded holidays",
            extra={"region_code": region_code, "start_year": start.year, "end_year": end.year, "count": len(dates)},
        )
        return dates
