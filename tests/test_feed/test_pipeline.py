"""End-to-end tests for FeedAggregator over a real History file."""

import json
import os

import httpx
import pytest

from watch_feed import FeedAggregator, FeedSettings
from watch_feed.exceptions import HistorySourceNotFoundError
from watch_feed.history.models import VisitRecord
from watch_feed.history.reader import HistoryStore, ms_to_chrome_time

NOW = 1_760_000_000_000
MINUTE = 60_000
HOUR = 60 * MINUTE
DAY = 24 * HOUR

SNW_PAGE = """
<html><head>
<meta property="og:title" content="Star Trek: Strange New Worlds">
<meta property="og:image" content="https://thumbnails.cbsig.net/snw.jpg">
</head></html>
"""


class FakeWeb:
    def __init__(self):
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if request.url.host == "www.paramountplus.com":
            return httpx.Response(200, html=SNW_PAGE)
        if request.url.host == "thumbnails.cbsig.net" and request.method == "HEAD":
            return httpx.Response(200)
        return httpx.Response(404)


@pytest.fixture
def history(make_history_db):
    return make_history_db([
        (1, "https://www.paramountplus.com/shows/strange-new-worlds/video/AbC123xyz/", None, NOW - 2 * HOUR, None),
        (2, "https://www.paramountplus.com/shows/strange-new-worlds/", None, NOW - HOUR, 1),
        (3, "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=42", "Never Gonna Give You Up", NOW - 30 * MINUTE, None),
        (4, "https://www.netflix.com/title/80100172", "Dark", NOW - 30 * DAY, None),
        (5, "https://www.peacocktv.com/home", "Home - Peacock", NOW - 10 * MINUTE, None),
    ])


def make_aggregator(tmp_path, history_path, web):
    settings = FeedSettings(history_path=history_path, profile_dir=tmp_path / "no-profiles", resolve_hosts=False)
    return FeedAggregator(settings, transport=httpx.MockTransport(web))


def test_feed_end_to_end(tmp_path, history):
    web = FakeWeb()
    result = make_aggregator(tmp_path, history, web).aggregate_sync(now_ms=NOW)

    assert [item.service for item in result.items] == ["youtube", "paramount"]
    youtube, paramount = result.items

    assert youtube.url == "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=42"
    assert youtube.canonical_url == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    assert youtube.thumb == "https://img.youtube.com/vi/dQw4w9WgXcQ/hqdefault.jpg"

    assert paramount.url == "https://www.paramountplus.com/shows/strange-new-worlds/"
    assert paramount.last_visited == NOW - HOUR
    assert paramount.title == "Star Trek: Strange New Worlds"
    assert paramount.thumb == "https://thumbnails.cbsig.net/snw.jpg"
    assert paramount.id == "strange-new-worlds"

    assert "www.netflix.com" not in {r.url.host for r in web.requests}


def test_feed_to_dict(tmp_path, history):
    result = make_aggregator(tmp_path, history, FakeWeb()).aggregate_sync(now_ms=NOW)
    payload = result.to_dict()

    assert payload["recencyDays"] == 14
    assert payload["items"][1] == {
        "service": "paramount",
        "id": "strange-new-worlds",
        "url": "https://www.paramountplus.com/shows/strange-new-worlds/",
        "canonicalUrl": "https://www.paramountplus.com/shows/strange-new-worlds/",
        "title": "Star Trek: Strange New Worlds",
        "thumb": "https://thumbnails.cbsig.net/snw.jpg",
        "lastVisited": NOW - HOUR,
        "peacockAssetId": None,
    }
    json.dumps(payload)


def test_cache_survives_between_calls(tmp_path, history):
    web = FakeWeb()
    aggregator = make_aggregator(tmp_path, history, web)
    aggregator.aggregate_sync(now_ms=NOW)
    first_run = len(web.requests)

    again = aggregator.aggregate_sync(now_ms=NOW)
    assert len(web.requests) == first_run
    assert again.items[1].title == "Star Trek: Strange New Worlds"


def test_recency_window_applies(tmp_path, history):
    result = make_aggregator(tmp_path, history, FakeWeb()).aggregate_sync(now_ms=NOW + 14 * DAY)
    assert result.items == []


def test_missing_history(tmp_path):
    aggregator = make_aggregator(tmp_path, tmp_path / "missing" / "History", FakeWeb())
    with pytest.raises(HistorySourceNotFoundError):
        aggregator.aggregate_sync(now_ms=NOW)


@pytest.fixture
def profiles(tmp_path, make_history_db):
    base = tmp_path / "Brave-Browser"
    default = make_history_db(
        [(1, "https://www.youtube.com/watch?v=defaultvid1", "Default Video", NOW - MINUTE, None)],
        path=base / "Default" / "History",
    )
    work = make_history_db(
        [(1, "https://www.youtube.com/watch?v=workvideo01", "Work Video", NOW - MINUTE, None)],
        path=base / "Profile 1" / "History",
    )
    os.utime(default, (NOW / 1000, NOW / 1000))
    os.utime(work, (NOW / 1000 - 3600, NOW / 1000 - 3600))
    (base / "Local State").write_text(json.dumps({
        "profile": {"info_cache": {"Default": {"name": "Personal"}, "Profile 1": {"name": "Work"}}},
    }))
    return base


def test_profile_selection(profiles):
    aggregator = FeedAggregator(
        FeedSettings(profile_dir=profiles, resolve_hosts=False),
        transport=httpx.MockTransport(FakeWeb()),
    )
    assert [(p.id, p.label) for p in aggregator.list_profiles()] == [
        ("Default", "Personal"),
        ("Profile 1", "Work"),
    ]

    assert aggregator.aggregate_sync(now_ms=NOW).items[0].id == "defaultvid1"
    assert aggregator.aggregate_sync(profile="Work", now_ms=NOW).items[0].id == "workvideo01"
    assert aggregator.aggregate_sync(profile="Profile 1", now_ms=NOW).items[0].id == "workvideo01"

    with pytest.raises(HistorySourceNotFoundError):
        aggregator.aggregate_sync(profile="Nobody", now_ms=NOW)


class FakeStore(HistoryStore):
    def __init__(self, path):
        self.path = path

    def recent_youtube_visits(self, limit):
        return [VisitRecord(
            url="https://youtu.be/shortlink01",
            title=None,
            visit_time_raw=ms_to_chrome_time(NOW - MINUTE),
            visit_id=7,
        )]

    def recent_domain_visits(self, domains, limit):
        assert "netflix.com" in domains
        return []

    def child_visits(self, visit_id, limit=6):
        return []

    def visit(self, visit_id):
        return None

    def latest_visit_for_url(self, url):
        return None


def test_injected_store(tmp_path):
    history_path = tmp_path / "History"
    history_path.touch()
    aggregator = FeedAggregator(
        FeedSettings(history_path=history_path, profile_dir=tmp_path / "none", resolve_hosts=False),
        store_factory=FakeStore,
        transport=httpx.MockTransport(FakeWeb()),
    )
    [item] = aggregator.aggregate_sync(now_ms=NOW).items
    assert item.service == "youtube"
    assert item.title == "YouTube Video"
    assert item.url == "https://youtu.be/shortlink01"
    assert item.canonical_url == "https://www.youtube.com/watch?v=shortlink01"
