"""Configuration parsing and validation for the PR review SLO tracker."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .buckets import rules_from_size_buckets
from .business_time import BusinessCalendar
from .errors import AuthenticationError, ConfigurationError
from .models import BucketRule, CalendarConfig, PTOInterval

DATA_DIR_ENV_VAR = "PR_REVIEW_SLO_HOME"
GITHUB_TOKEN_ENV_VAR = "GITHUB_TOKEN"

DEFAULT_BUCKET_RULES: Tuple[BucketRule, ...] = rules_from_size_buckets(
    {"small": (200, 1), "medium": (800, 3)}
)


@dataclass(frozen=True)
class DataPaths:
    """Locations of the data directory and the files inside it.

    Built once per invocation and passed to every I/O collaborator.
    """

    data_dir: Path

    @classmethod
    def from_env(cls, data_dir: Optional[str] = None) -> "DataPaths":
        """Resolve the data directory from an explicit value, the environment, or the default."""
        raw = data_dir or os.getenv(DATA_DIR_ENV_VAR, "").strip()
        return cls(Path(raw).expanduser() if raw else Path.home() / ".pr-review-slo")

    @property
    def config_file(self) -> Path:
        return self.data_dir / "config.toml"

    @property
    def budget_runs_file(self) -> Path:
        return self.data_dir / "budget-runs.jsonl"

    @property
    def pto_file(self) -> Path:
        return self.data_dir / "pto.jsonl"

    def holiday_cache_file(self, year: int) -> Path:
        return self.data_dir / f"holidays-{year}.json"

    def ensure(self) -> None:
        """Create the data directory and ignore holiday caches in version control."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        gitignore = self.data_dir / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text("holidays-*.json\n", encoding="utf-8")


@dataclass(frozen=True)
class AppConfig:
    """Validated runtime settings used by the SLO tracker."""

    github_username: str = ""
    github_repos: Tuple[str, ...] = ()
    business_start_hour: int = 9
    business_end_hour: int = 17
    timezone: str = "America/Los_Angeles"
    business_days: Tuple[int, ...] = (1, 2, 3, 4, 5)
    holiday_country_code: str = "US"
    slo_target: float = 0.9
    slo_window_days: int = 30
    bucket_rules: Tuple[BucketRule, ...] = field(default=DEFAULT_BUCKET_RULES)


DEFAULT_CONFIG_TEMPLATE = """# PR Review SLO Configuration

# Business days: 1=Mon, 7=Sun
businessDays = [1, 2, 3, 4, 5]

holidayCountryCode = "US"  # or "GB-ENG" for subregions

[github]
username = "{username}"
# repos = ["org/repo", "org2/*"]  # Optional: filter to specific repos

[businessHours]
start = 9
end = 17
timezone = "America/Los_Angeles"

[slo]
target = 0.90
windowDays = 30

# The most urgent matching bucket wins. Sizes are lines changed (exclusive).
[buckets.small]
maxLoc = 200
businessDays = 1

[buckets.medium]
maxLoc = 800
businessDays = 3

# [buckets.codeowner]
# maxLoc = 800
# businessDays = 0.5
# asCodeOwner = true
"""


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key, {})
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Invalid configuration: '{key}' must be a table.")
    return value


def _bucket_number(table: Mapping[str, Any], key: str, name: str) -> float:
    value = table.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"Invalid configuration for bucket '{name}': '{key}' must be a number.")
    return float(value)


def _bucket_predicate(table: Mapping[str, Any], key: str, expected: type, name: str) -> Any:
    value = table.get(key)
    if value is not None and not isinstance(value, expected):
        raise ConfigurationError(
            f"Invalid configuration for bucket '{name}': '{key}' must be a {expected.__name__}."
        )
    return value


def _parse_bucket_rules(raw: Mapping[str, Any]) -> Tuple[BucketRule, ...]:
    """Build bucket rules from ``[buckets.*]`` or the legacy ``[sizeBuckets.*]`` ladder."""
    if "buckets" in raw:
        rules = []
        for name, table in _section(raw, "buckets").items():
            if not isinstance(table, Mapping):
                raise ConfigurationError(f"Invalid configuration: bucket '{name}' must be a table.")
            rules.append(
                BucketRule(
                    name=name,
                    size_ceiling=_bucket_number(table, "maxLoc", name),
                    allowed_days=_bucket_number(table, "businessDays", name),
                    as_code_owner=_bucket_predicate(table, "asCodeOwner", bool, name),
                    requested_reviewer=_bucket_predicate(table, "requestedReviewer", str, name),
                )
            )
        return tuple(rules)

    if "sizeBuckets" in raw:
        ladder: Dict[str, Tuple[float, float]] = {}
        for name, table in _section(raw, "sizeBuckets").items():
            if not isinstance(table, Mapping):
                raise ConfigurationError(f"Invalid configuration: size bucket '{name}' must be a table.")
            ladder[name] = (_bucket_number(table, "maxLoc", name), _bucket_number(table, "businessDays", name))
        return rules_from_size_buckets(ladder)

    return DEFAULT_BUCKET_RULES


def parse_config(raw: Mapping[str, Any]) -> AppConfig:
    """Merge a parsed TOML document over the defaults and validate it.

    Raises:
        ConfigurationError: If any value has the wrong type or is out of range.
    """
    defaults = AppConfig()
    github = _section(raw, "github")
    hours = _section(raw, "businessHours")
    slo = _section(raw, "slo")

    try:
        config = AppConfig(
            github_username=str(github.get("username", defaults.github_username)),
            github_repos=tuple(str(repo) for repo in github.get("repos", defaults.github_repos)),
            business_start_hour=int(hours.get("start", defaults.business_start_hour)),
            business_end_hour=int(hours.get("end", defaults.business_end_hour)),
            timezone=str(hours.get("timezone", defaults.timezone)),
            business_days=tuple(int(day) for day in raw.get("businessDays", defaults.business_days)),
            holiday_country_code=str(raw.get("holidayCountryCode", defaults.holiday_country_code)),
            slo_target=float(slo.get("target", defaults.slo_target)),
            slo_window_days=int(slo.get("windowDays", defaults.slo_window_days)),
            bucket_rules=_parse_bucket_rules(raw),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration value: {exc}") from exc

    if not 0 < config.slo_target < 1:
        raise ConfigurationError("Invalid value for 'slo.target': expected a fraction between 0 and 1.")
    if config.slo_window_days <= 0:
        raise ConfigurationError("Invalid value for 'slo.windowDays': expected an integer greater than 0.")
    if not config.holiday_country_code.strip():
        raise ConfigurationError("Invalid value for 'holidayCountryCode': expected a country code.")

    # Fail on bad hours, weekdays or timezone now rather than mid-command.
    build_calendar(config)
    return config


def load_config(paths: DataPaths) -> AppConfig:
    """Load ``config.toml`` from the data directory, falling back to defaults when absent.

    Raises:
        ConfigurationError: If the file is not valid TOML or contains invalid values.
    """
    paths.ensure()
    if not paths.config_file.exists():
        return AppConfig()

    try:
        with paths.config_file.open("rb") as handle:
            raw = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Could not parse {paths.config_file}: {exc}") from exc

    return parse_config(raw)


def save_default_config(paths: DataPaths, username: str) -> Path:
    """Write the default configuration file for ``username`` and return its path."""
    paths.ensure()
    paths.config_file.write_text(DEFAULT_CONFIG_TEMPLATE.format(username=username), encoding="utf-8")
    return paths.config_file


def load_github_token() -> str:
    """Return the GitHub token from the environment.

    Raises:
        AuthenticationError: If ``GITHUB_TOKEN`` is not configured.
    """
    token = os.getenv(GITHUB_TOKEN_ENV_VAR, "").strip()
    if not token:
        raise AuthenticationError(
            "Missing required GitHub token. "
            f"Set the '{GITHUB_TOKEN_ENV_VAR}' environment variable "
            "(scopes: repo for private repositories, public_repo otherwise)."
        )
    return token


def build_calendar(
    config: AppConfig,
    holidays: Iterable[date] = (),
    pto_intervals: Iterable[PTOInterval] = (),
) -> BusinessCalendar:
    """Build the business calendar for one invocation."""
    return BusinessCalendar(
        CalendarConfig(
            business_start_hour=config.business_start_hour,
            business_end_hour=config.business_end_hour,
            timezone=config.timezone,
            business_weekdays=frozenset(config.business_days),
            holidays=frozenset(holidays),
            pto_intervals=tuple(pto_intervals),
        )
    )
