"""Environment-driven settings for the feed pipeline."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_RECENCY_DAYS = 14
DEFAULT_PROFILE_DIR = (
    Path.home() / "Library" / "Application Support" / "BraveSoftware" / "Brave-Browser"
)


@dataclass
class FeedSettings:
    """Knobs for one aggregator instance.

    Args:
        recency_days: Maximum age of a visit eligible for the feed.
        history_path: Explicit History DB override; ignored if it does not exist.
        profile_dir: Browser user-data root holding ``Default``/``Profile N``.
        tmdb_api_key: Enables the TMDB lookup step when set.
        resolve_hosts: Refuse page and image URLs that resolve to private addresses.
        max_response_bytes: Largest content page the enricher will parse.
    """

    recency_days: int = DEFAULT_RECENCY_DAYS
    history_path: Path | None = None
    profile_dir: Path = DEFAULT_PROFILE_DIR
    tmdb_api_key: str | None = None
    youtube_limit: int = 60
    domain_limit: int = 120
    enrich_limit: int = 40
    request_timeout: float = 10.0
    max_concurrency: int = 8
    cache_max_entries: int | None = None
    resolve_hosts: bool = True
    max_response_bytes: int = 1_048_576

    @property
    def recency_ms(self) -> int:
        return self.recency_days * 24 * 60 * 60 * 1000

    @classmethod
    def from_env(cls) -> FeedSettings:
        """Build settings from RECENCY_DAYS, BRAVE_HISTORY_PATH, BRAVE_PROFILE_DIR and TMDB_API_KEY."""
        history_path = os.environ.get("BRAVE_HISTORY_PATH") or None
        profile_dir = os.environ.get("BRAVE_PROFILE_DIR") or None
        return cls(
            recency_days=_parse_recency_days(os.environ.get("RECENCY_DAYS")),
            history_path=Path(history_path).expanduser() if history_path else None,
            profile_dir=Path(profile_dir).expanduser() if profile_dir else DEFAULT_PROFILE_DIR,
            tmdb_api_key=os.environ.get("TMDB_API_KEY") or None,
        )


def _parse_recency_days(raw: str | None) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_RECENCY_DAYS
    try:
        days = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer RECENCY_DAYS=%r", raw)
        return DEFAULT_RECENCY_DAYS
    if days < 1:
        logger.warning("Ignoring RECENCY_DAYS=%d (must be >= 1)", days)
        return DEFAULT_RECENCY_DAYS
    return days
