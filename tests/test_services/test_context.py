"""Tests for the visit-graph context resolver."""

from watch_feed.exceptions import HistoryReadError
from watch_feed.history.reader import BraveHistoryStore, HistoryStore
from watch_feed.services.context import ContextResolver

NOW = 1_760_000_000_000


def test_forward_prefers_closer_hop(make_history_db):
    db = make_history_db([
        (1, "https://www.amazon.com/gp/video/storefront", "Prime Video", NOW - 9_000, None),
        (2, "https://www.amazon.com/s?k=x", "Search", NOW - 8_000, 1),
        (3, "https://www.primevideo.com/detail/FAR", "Far", NOW - 7_000, 2),
        (4, "https://www.amazon.com/gp/video/detail/NEAR", "Near", NOW - 6_000, 1),
    ])
    with BraveHistoryStore(db) as store:
        found = ContextResolver(store).forward_context(1, "prime")
    assert found == "https://www.amazon.com/gp/video/detail/NEAR"


def test_forward_respects_depth_bound(make_history_db):
    chain = [(1, "https://www.amazon.com/gp/video/storefront", None, NOW - 10_000, None)]
    for visit_id in range(2, 7):
        chain.append((visit_id, f"https://www.amazon.com/s?page={visit_id}", None, NOW - 10_000 + visit_id, visit_id - 1))
    chain.append((7, "https://www.primevideo.com/detail/DEEP", None, NOW - 1_000, 6))
    db = make_history_db(chain)

    with BraveHistoryStore(db) as store:
        assert ContextResolver(store, max_depth=5).forward_context(1, "prime") is None
        assert ContextResolver(store, max_depth=6).forward_context(1, "prime") == (
            "https://www.primevideo.com/detail/DEEP"
        )


def test_forward_respects_fan_out(make_history_db):
    visits = [(1, "https://www.amazon.com/gp/video/storefront", None, NOW - 20_000, None)]
    visits.append((2, "https://www.primevideo.com/detail/OLDEST", None, NOW - 19_000, 1))
    for visit_id in range(3, 9):
        visits.append((visit_id, f"https://www.amazon.com/s?k={visit_id}", None, NOW - 10_000 + visit_id, 1))
    db = make_history_db(visits)

    with BraveHistoryStore(db) as store:
        assert ContextResolver(store, max_depth=1, fan_out=6).forward_context(1, "prime") is None
        assert ContextResolver(store, max_depth=1, fan_out=7).forward_context(1, "prime") == (
            "https://www.primevideo.com/detail/OLDEST"
        )


def test_forward_terminates_on_cycle(make_history_db):
    db = make_history_db([
        (1, "https://www.amazon.com/a", None, NOW - 3_000, 3),
        (2, "https://www.amazon.com/b", None, NOW - 2_000, 1),
        (3, "https://www.amazon.com/c", None, NOW - 1_000, 2),
    ])
    with BraveHistoryStore(db) as store:
        assert ContextResolver(store).forward_context(1, "prime") is None


def test_forward_not_configured_for_service(make_history_db):
    db = make_history_db([(1, "https://www.netflix.com/browse", None, NOW, None)])
    with BraveHistoryStore(db) as store:
        assert ContextResolver(store).forward_context(1, "netflix") is None


def test_backward_finds_series_page(make_history_db):
    db = make_history_db([
        (1, "https://www.hulu.com/series/the-bear-05c2f6b6", "The Bear", NOW - 3_000, None),
        (2, "https://www.hulu.com/hub/tv", "TV", NOW - 2_000, 1),
        (3, "https://www.hulu.com/watch/abc123", "Watch", NOW - 1_000, 2),
    ])
    with BraveHistoryStore(db) as store:
        resolver = ContextResolver(store)
        assert resolver.backward_context("https://www.hulu.com/watch/abc123", "hulu") == (
            "https://www.hulu.com/series/the-bear-05c2f6b6"
        )
        assert resolver.backward_context("https://www.hulu.com/watch/unknown", "hulu") is None
        assert resolver.backward_context("https://www.hulu.com/watch/abc123", "netflix") is None


def test_backward_terminates_on_cycle(make_history_db):
    db = make_history_db([
        (1, "https://www.hulu.com/watch/a", None, NOW - 2_000, 2),
        (2, "https://www.hulu.com/hub/tv", None, NOW - 1_000, 1),
    ])
    with BraveHistoryStore(db) as store:
        assert ContextResolver(store).backward_context("https://www.hulu.com/watch/a", "hulu") is None


class BrokenStore(HistoryStore):
    def recent_youtube_visits(self, limit):
        return []

    def recent_domain_visits(self, domains, limit):
        return []

    def child_visits(self, visit_id, limit=6):
        raise HistoryReadError("database disk image is malformed")

    def visit(self, visit_id):
        raise HistoryReadError("database disk image is malformed")

    def latest_visit_for_url(self, url):
        raise HistoryReadError("database disk image is malformed")


def test_store_failures_yield_no_context():
    resolver = ContextResolver(BrokenStore())
    assert resolver.forward_context(1, "prime") is None
    assert resolver.backward_context("https://www.hulu.com/watch/a", "hulu") is None
