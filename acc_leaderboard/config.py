"""
Runtime configuration, read from environment variables.

    DATABASE_URL               SQLAlchemy URL (sqlite:///acc_results.db)
    RESULTS_PATH               directory the server writes results to (results)
    RESULTS_TIMEZONE           zone of the timestamps in file names (local zone)
    LEADERBOARD_CACHE_SECONDS  aggregated leaderboard cache lifetime (60)
    WATCH_POLL_SECONDS         change-feed poll interval (1.0)
    WATCH_DEBOUNCE_SECONDS     a file must be unchanged this long before import (1.0)
    LOG_LEVEL                  root log level (INFO)
"""

import os
from dataclasses import dataclass, replace
from datetime import tzinfo
from typing import Mapping, Optional
from zoneinfo import ZoneInfo

from .database.db_manager import DEFAULT_DATABASE_URL


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    results_path: str = 'results'
    timezone: Optional[str] = None  # None: the machine's local zone
    cache_ttl_seconds: float = 60.0
    poll_interval: float = 1.0
    debounce_seconds: float = 1.0
    log_level: str = 'INFO'

    def tzinfo(self) -> Optional[tzinfo]:
        """
        Zone used to interpret result file names

        None stands for the system local zone, DST rules included
        (`TZ` or the machine setting).
        """
        if self.timezone:
            return ZoneInfo(self.timezone)
        return None

    def with_overrides(self, **overrides) -> 'Settings':
        """Copy with every non-None override applied (CLI flags win over env)"""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    defaults = Settings()
    return Settings(
        database_url=env.get('DATABASE_URL', defaults.database_url),
        results_path=env.get('RESULTS_PATH', defaults.results_path),
        timezone=env.get('RESULTS_TIMEZONE') or None,
        cache_ttl_seconds=float(env.get('LEADERBOARD_CACHE_SECONDS', defaults.cache_ttl_seconds)),
        poll_interval=float(env.get('WATCH_POLL_SECONDS', defaults.poll_interval)),
        debounce_seconds=float(env.get('WATCH_DEBOUNCE_SECONDS', defaults.debounce_seconds)),
        log_level=env.get('LOG_LEVEL', defaults.log_level).upper(),
    )
