"""Read-only access to Chromium-family (Brave) history databases."""

from __future__ import annotations

import json
import logging
import shutil
import sqlite3
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from watch_feed.config import FeedSettings
from watch_feed.exceptions import HistoryReadError, HistorySourceNotFoundError
from watch_feed.history.models import BrowserProfile, VisitRecord

logger = logging.getLogger(__name__)

# Milliseconds from 1601-01-01 to 1970-01-01 (Chrome/WebKit epoch).
CHROME_EPOCH_OFFSET_MS = 11_644_473_600_000

YOUTUBE_URL_PATTERNS = ("%youtube.com/watch%", "%youtube.com/shorts/%", "%youtu.be/%")

_VISIT_COLUMNS = """
    SELECT
        u.url AS url,
        u.title AS title,
        v.visit_time AS visit_time,
        v.id AS visit_id,
        v.from_visit AS from_visit
    FROM visits v
    JOIN urls u ON u.id = v.url
"""


def chrome_time_to_ms(visit_time: int) -> int:
    """Convert Chrome microseconds-since-1601 to unix milliseconds."""
    return int(visit_time) // 1000 - CHROME_EPOCH_OFFSET_MS


def ms_to_chrome_time(ms: int) -> int:
    return (int(ms) + CHROME_EPOCH_OFFSET_MS) * 1000


def list_profiles(base_dir: Path) -> list[BrowserProfile]:
    """List profiles under a browser user-data dir, most recently used first."""
    if not base_dir.exists():
        return []

    labels = _read_profile_labels(base_dir)
    profiles = []
    try:
        children = list(base_dir.iterdir())
    except OSError as e:
        logger.warning("Cannot list browser profiles in %s: %s", base_dir, e)
        return []

    for child in children:
        if not child.is_dir():
            continue
        if child.name != "Default" and not child.name.startswith("Profile"):
            continue
        history = child / "History"
        if not history.exists():
            continue
        profiles.append(BrowserProfile(
            id=child.name,
            label=labels.get(child.name, child.name),
            path=history,
            mtime=history.stat().st_mtime,
        ))

    profiles.sort(key=lambda p: p.mtime, reverse=True)
    return profiles


def _read_profile_labels(base_dir: Path) -> dict[str, str]:
    """Friendly profile names live in ``Local State`` under profile.info_cache."""
    state_path = base_dir / "Local State"
    if not state_path.exists():
        return {}
    try:
        state = json.loads(state_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Cannot read profile names from %s: %s", state_path, e)
        return {}

    info = (state.get("profile") or {}).get("info_cache") or {}
    labels = {}
    for key, value in info.items():
        name = value.get("name") if isinstance(value, dict) else None
        if name:
            labels[key] = str(name)
    return labels


def resolve_history_path(settings: FeedSettings, profile: str | None = None) -> Path:
    """Pick the History DB for a request.

    A requested profile (by id or label) wins, then the BRAVE_HISTORY_PATH
    override, then the most recently modified profile.
    """
    profiles = list_profiles(settings.profile_dir)

    if profile:
        for p in profiles:
            if profile in (p.id, p.label):
                return p.path
        raise HistorySourceNotFoundError(f"Browser profile not found: {profile}")

    if settings.history_path and settings.history_path.exists():
        return settings.history_path

    if profiles:
        logger.info("Using history from profile %s (%s)", profiles[0].id, profiles[0].path)
        return profiles[0].path

    raise HistorySourceNotFoundError(
        f"Browser history not found (override={settings.history_path}, "
        f"profile_dir={settings.profile_dir})"
    )


class HistoryStore(ABC):
    """Query interface over the visit graph."""

    def __enter__(self) -> HistoryStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    @abstractmethod
    def recent_youtube_visits(self, limit: int) -> list[VisitRecord]:
        """Most recent visits to YouTube watch, shorts or short-link URLs."""
        ...

    @abstractmethod
    def recent_domain_visits(self, domains: Sequence[str], limit: int) -> list[VisitRecord]:
        """Most recent visits whose URL contains any of ``domains``."""
        ...

    @abstractmethod
    def child_visits(self, visit_id: int, limit: int = 6) -> list[VisitRecord]:
        """Visits that navigated from ``visit_id``, newest first."""
        ...

    @abstractmethod
    def visit(self, visit_id: int) -> VisitRecord | None:
        ...

    @abstractmethod
    def latest_visit_for_url(self, url: str) -> VisitRecord | None:
        ...


class BraveHistoryStore(HistoryStore):
    """Query a temporary copy of a Brave/Chrome ``History`` SQLite file.

    Use as a context manager; the copy lives until ``close()``.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._tmp_dir: Path | None = None
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> BraveHistoryStore:
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        if not self.path.exists():
            raise HistorySourceNotFoundError(f"Browser history not found: {self.path}")

        db_copy = self._copy_db(self.path)
        try:
            self._conn = sqlite3.connect(str(db_copy))
            self._conn.row_factory = sqlite3.Row
        except sqlite3.Error as e:
            self.close()
            raise HistoryReadError(f"Cannot open history copy {db_copy}: {e}") from e

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        if self._tmp_dir is not None:
            shutil.rmtree(self._tmp_dir, ignore_errors=True)
            self._tmp_dir = None

    def _copy_db(self, path: Path) -> Path:
        """Chrome locks History; copy it (with WAL side files) to a temp dir."""
        try:
            self._tmp_dir = Path(tempfile.mkdtemp(prefix="watch-feed-history-"))
            dest = self._tmp_dir / path.name
            shutil.copy2(path, dest)
            for ext in ("-wal", "-shm"):
                side = Path(str(path) + ext)
                if side.exists():
                    shutil.copy2(side, Path(str(dest) + ext))
            return dest
        except OSError as e:
            self.close()
            raise HistoryReadError(f"Failed to copy history DB {path}: {e}") from e

    def _query(self, sql: str, params: Sequence = ()) -> list[VisitRecord]:
        if self._conn is None:
            raise HistoryReadError("History store is not open")
        try:
            rows = self._conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as e:
            raise HistoryReadError(f"Failed querying history: {e}") from e
        return [self._row_to_visit(row) for row in rows]

    @staticmethod
    def _row_to_visit(row: sqlite3.Row) -> VisitRecord:
        return VisitRecord(
            url=row["url"] or "",
            title=row["title"] or None,
            visit_time_raw=int(row["visit_time"] or 0),
            visit_id=int(row["visit_id"]),
            parent_visit_id=int(row["from_visit"]) if row["from_visit"] else None,
        )

    def recent_youtube_visits(self, limit: int) -> list[VisitRecord]:
        where = " OR ".join("u.url LIKE ?" for _ in YOUTUBE_URL_PATTERNS)
        return self._query(
            f"{_VISIT_COLUMNS} WHERE {where} ORDER BY v.visit_time DESC LIMIT ?",
            (*YOUTUBE_URL_PATTERNS, limit),
        )

    def recent_domain_visits(self, domains: Sequence[str], limit: int) -> list[VisitRecord]:
        if not domains:
            return []
        where = " OR ".join("u.url LIKE ?" for _ in domains)
        return self._query(
            f"{_VISIT_COLUMNS} WHERE {where} ORDER BY v.visit_time DESC LIMIT ?",
            (*(f"%{d}%" for d in domains), limit),
        )

    def child_visits(self, visit_id: int, limit: int = 6) -> list[VisitRecord]:
        return self._query(
            f"{_VISIT_COLUMNS} WHERE v.from_visit = ? ORDER BY v.visit_time DESC LIMIT ?",
            (visit_id, limit),
        )

    def visit(self, visit_id: int) -> VisitRecord | None:
        rows = self._query(f"{_VISIT_COLUMNS} WHERE v.id = ? LIMIT 1", (visit_id,))
        return rows[0] if rows else None

    def latest_visit_for_url(self, url: str) -> VisitRecord | None:
        rows = self._query(
            f"{_VISIT_COLUMNS} WHERE u.url = ? ORDER BY v.visit_time DESC LIMIT 1",
            (url,),
        )
        return rows[0] if rows else None
