"""Tests for the history store and profile discovery."""

import json
import os

import pytest

from watch_feed.config import FeedSettings
from watch_feed.exceptions import HistoryReadError, HistorySourceNotFoundError
from watch_feed.history.reader import (
    BraveHistoryStore,
    chrome_time_to_ms,
    list_profiles,
    ms_to_chrome_time,
    resolve_history_path,
)

NOW = 1_760_000_000_000


def test_chrome_time_to_ms():
    assert chrome_time_to_ms(13_344_473_600_000_000) == 1_700_000_000_000
    assert ms_to_chrome_time(1_700_000_000_000) == 13_344_473_600_000_000


def test_chrome_time_floors_microseconds():
    assert chrome_time_to_ms(13_344_473_600_000_999) == 1_700_000_000_000


@pytest.fixture
def history_db(make_history_db):
    return make_history_db([
        (1, "https://www.youtube.com/watch?v=abc12345678", "Video A", NOW - 1000, None),
        (2, "https://www.netflix.com/title/80100172", "Dark", NOW - 2000, None),
        (3, "https://www.netflix.com/watch/80100173", "Dark", NOW - 1500, 2),
        (4, "https://example.com/", "Example", NOW - 500, None),
        (5, "https://youtu.be/xyz98765432", None, NOW - 3000, None),
    ])


def test_recent_youtube_visits(history_db):
    with BraveHistoryStore(history_db) as store:
        rows = store.recent_youtube_visits(10)
    assert [r.visit_id for r in rows] == [1, 5]
    assert rows[0].title == "Video A"
    assert rows[1].title is None
    assert chrome_time_to_ms(rows[0].visit_time_raw) == NOW - 1000


def test_recent_domain_visits(history_db):
    with BraveHistoryStore(history_db) as store:
        rows = store.recent_domain_visits(["netflix.com", "hulu.com"], 10)
        limited = store.recent_domain_visits(["netflix.com"], 1)
    assert [r.visit_id for r in rows] == [3, 2]
    assert rows[0].parent_visit_id == 2
    assert rows[1].parent_visit_id is None
    assert [r.visit_id for r in limited] == [3]


def test_recent_domain_visits_no_domains(history_db):
    with BraveHistoryStore(history_db) as store:
        assert store.recent_domain_visits([], 10) == []


def test_visit_graph_lookups(history_db):
    with BraveHistoryStore(history_db) as store:
        assert [c.visit_id for c in store.child_visits(2)] == [3]
        assert store.visit(3).url == "https://www.netflix.com/watch/80100173"
        assert store.visit(99) is None
        assert store.latest_visit_for_url("https://www.netflix.com/title/80100172").visit_id == 2
        assert store.latest_visit_for_url("https://nowhere.example/") is None


def test_missing_history_file(tmp_path):
    with pytest.raises(HistorySourceNotFoundError, match="not found"):
        BraveHistoryStore(tmp_path / "History").open()


def test_query_requires_open_store(history_db):
    store = BraveHistoryStore(history_db)
    with pytest.raises(HistoryReadError, match="not open"):
        store.recent_youtube_visits(5)


def test_copy_removed_on_close(history_db):
    store = BraveHistoryStore(history_db)
    store.open()
    tmp_dir = store._tmp_dir
    assert (tmp_dir / "History").exists()
    store.close()
    assert not tmp_dir.exists()
    assert history_db.exists()


def test_corrupt_db_raises_read_error(tmp_path):
    bad = tmp_path / "History"
    bad.write_text("not a database")
    with BraveHistoryStore(bad) as store:
        with pytest.raises(HistoryReadError):
            store.recent_youtube_visits(5)


def _make_profile(base, name, mtime):
    profile_dir = base / name
    profile_dir.mkdir(parents=True)
    history = profile_dir / "History"
    history.write_bytes(b"")
    os.utime(history, (mtime, mtime))
    return history


def test_list_profiles_sorted_and_labelled(tmp_path):
    _make_profile(tmp_path, "Default", 1_000)
    _make_profile(tmp_path, "Profile 1", 2_000)
    (tmp_path / "System Profile").mkdir()
    (tmp_path / "Profile 2").mkdir()  # no History file
    (tmp_path / "Local State").write_text(json.dumps({
        "profile": {"info_cache": {"Profile 1": {"name": "Work"}}},
    }))

    profiles = list_profiles(tmp_path)

    assert [p.id for p in profiles] == ["Profile 1", "Default"]
    assert profiles[0].label == "Work"
    assert profiles[1].label == "Default"
    assert profiles[0].path == tmp_path / "Profile 1" / "History"


def test_list_profiles_bad_local_state(tmp_path):
    _make_profile(tmp_path, "Default", 1_000)
    (tmp_path / "Local State").write_text("{")
    profiles = list_profiles(tmp_path)
    assert [p.label for p in profiles] == ["Default"]


def test_list_profiles_missing_dir(tmp_path):
    assert list_profiles(tmp_path / "missing") == []


def test_resolve_requested_profile_wins(tmp_path):
    default = _make_profile(tmp_path, "Default", 1_000)
    work = _make_profile(tmp_path, "Profile 1", 2_000)
    (tmp_path / "Local State").write_text(json.dumps({
        "profile": {"info_cache": {"Profile 1": {"name": "Work"}}},
    }))
    settings = FeedSettings(profile_dir=tmp_path, history_path=work)

    assert resolve_history_path(settings, "Default") == default
    assert resolve_history_path(settings, "Work") == work


def test_resolve_override_then_newest(tmp_path):
    _make_profile(tmp_path / "brave", "Default", 1_000)
    newest = _make_profile(tmp_path / "brave", "Profile 3", 5_000)
    override = tmp_path / "exported" / "History"
    override.parent.mkdir()
    override.write_bytes(b"")

    with_override = FeedSettings(profile_dir=tmp_path / "brave", history_path=override)
    stale_override = FeedSettings(profile_dir=tmp_path / "brave", history_path=tmp_path / "gone")

    assert resolve_history_path(with_override) == override
    assert resolve_history_path(stale_override) == newest


def test_resolve_unknown_profile(tmp_path):
    _make_profile(tmp_path, "Default", 1_000)
    with pytest.raises(HistorySourceNotFoundError, match="Guest"):
        resolve_history_path(FeedSettings(profile_dir=tmp_path), "Guest")


def test_resolve_nothing_found(tmp_path):
    with pytest.raises(HistorySourceNotFoundError):
        resolve_history_path(FeedSettings(profile_dir=tmp_path / "empty"))
