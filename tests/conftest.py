"""Shared fixtures: a minimal Chromium History database."""

import sqlite3

import pytest

from watch_feed.history.reader import ms_to_chrome_time

NOW_MS = 1_760_000_000_000
DAY_MS = 86_400_000


@pytest.fixture
def now_ms():
    return NOW_MS


@pytest.fixture
def make_history_db(tmp_path):
    """Build a History DB from (visit_id, url, title, visited_ms, from_visit) tuples."""

    def _make(visits, path=None):
        db_path = path or tmp_path / "History"
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(db_path))
        conn.execute("""
            CREATE TABLE urls (
                id INTEGER PRIMARY KEY,
                url LONGVARCHAR,
                title LONGVARCHAR
            )
        """)
        conn.execute("""
            CREATE TABLE visits (
                id INTEGER PRIMARY KEY,
                url INTEGER NOT NULL,
                visit_time INTEGER NOT NULL,
                from_visit INTEGER
            )
        """)
        url_ids = {}
        for visit_id, url, title, visited_ms, from_visit in visits:
            if url not in url_ids:
                cur = conn.execute("INSERT INTO urls (url, title) VALUES (?, ?)", (url, title))
                url_ids[url] = cur.lastrowid
            conn.execute(
                "INSERT INTO visits VALUES (?, ?, ?, ?)",
                (visit_id, url_ids[url], ms_to_chrome_time(visited_ms), from_visit or 0),
            )
        conn.commit()
        conn.close()
        return db_path

    return _make
