"""Per-service classification, canonicalization and grouping rules.

Every service-specific heuristic in the pipeline reads from this table so a
single entry can be tested in isolation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Pattern


@dataclass(frozen=True)
class DomainRule:
    """A host fragment and the URL shapes on it that count as content.

    ``prefer`` of ``None`` means every URL on the host is a candidate and the
    service's non-content rules do the filtering.
    """

    match: str
    prefer: tuple[Pattern[str], ...] | None = None

    def is_preferred(self, path_with_query: str) -> bool:
        if self.prefer is None:
            return True
        return any(rx.search(path_with_query) for rx in self.prefer)


@dataclass(frozen=True)
class ServiceRule:
    service: str
    display_names: tuple[str, ...]
    domains: tuple[DomainRule, ...]
    # Canonicalizer rejects (exact, case-sensitive path).
    non_content_paths: frozenset[str] = frozenset()
    # Post-grouping filters (lowercased).
    non_content_path_prefixes: tuple[str, ...] = ()
    non_content_titles: frozenset[str] = frozenset()
    non_content_title_fragments: tuple[str, ...] = ()
    # Positive content heuristic for services without preferred patterns.
    content_path_prefixes: tuple[str, ...] = ()
    content_query_params: tuple[str, ...] = ()
    id_patterns: tuple[Pattern[str], ...] = ()
    id_query_params: tuple[str, ...] = ()
    # (label, pattern) pairs matched against the lowercased canonical path.
    series_key_patterns: tuple[tuple[str, Pattern[str]], ...] = ()
    # Path prefixes whose next segment is a human-readable slug.
    title_slug_prefixes: tuple[str, ...] = ()
    movie_path_prefixes: tuple[str, ...] = ()
    tv_path_prefixes: tuple[str, ...] = ()
    tv_title_markers: tuple[str, ...] = ()
    # Watch-page rewrites to a richer page: (pattern, format template).
    meta_rewrites: tuple[tuple[Pattern[str], str], ...] = ()
    meta_path_prefixes: tuple[str, ...] = ()
    # (host fragment, path prefixes) accepted as a context page.
    forward_context: tuple[tuple[str, tuple[str, ...]], ...] = ()
    backward_context: tuple[tuple[str, tuple[str, ...]], ...] = ()
    backward_context_trigger: tuple[str, ...] = ()
    trust_thumbs: bool = False
    generic_thumb_markers: tuple[str, ...] = ()
    group_by_thumb: bool = True
    episodic: bool = True


def _rx(*patterns: str, flags: int = 0) -> tuple[Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


PEACOCK_ID_PARAMS = ("playbackId", "assetId", "asset_id", "id", "cid", "uuid")

RULES: dict[str, ServiceRule] = {
    "youtube": ServiceRule(
        service="youtube",
        display_names=("YouTube",),
        domains=(DomainRule("youtube.com"), DomainRule("youtu.be")),
        episodic=False,
    ),
    "netflix": ServiceRule(
        service="netflix",
        display_names=("Netflix",),
        domains=(DomainRule("netflix.com", _rx(r"/watch/\d+", r"/title/\d+")),),
        non_content_paths=frozenset({"/", "/browse", "/home"}),
        id_patterns=_rx(r"/(?:watch|title)/(\d+)"),
        series_key_patterns=(("title", re.compile(r"/title/(\d+)")),),
        meta_rewrites=((re.compile(r"/watch/(\d+)"), "https://www.netflix.com/title/{0}"),),
        meta_path_prefixes=("/title/",),
    ),
    "hulu": ServiceRule(
        service="hulu",
        display_names=("Hulu",),
        domains=(DomainRule(
            "hulu.com",
            _rx(r"/watch/[A-Za-z0-9]+", r"/series/[^/]+", r"/movie/[^/]+"),
        ),),
        non_content_paths=frozenset({"/", "/hub/home", "/welcome"}),
        id_patterns=_rx(r"/watch/([A-Za-z0-9-]+)", r"/(?:series|movie)/([^/?#]+)"),
        series_key_patterns=(
            ("series", re.compile(r"/series/([^/]+)")),
            ("movie", re.compile(r"/movie/([^/]+)")),
        ),
        title_slug_prefixes=("/series/", "/movie/"),
        movie_path_prefixes=("/movie/",),
        tv_path_prefixes=("/series/",),
        meta_path_prefixes=("/movie/", "/series/"),
        backward_context=(("hulu.com", ("/movie/", "/series/")),),
        backward_context_trigger=("/watch/",),
    ),
    "disney": ServiceRule(
        service="disney",
        display_names=("Disney+", "Disney Plus"),
        domains=(DomainRule(
            "disneyplus.com",
            _rx(
                r"/video/[A-Za-z0-9-]+",
                r"/player/[A-Za-z0-9-]+",
                r"/movies/[^/]+(?:/[A-Za-z0-9-]+)?",
                r"/series/[^/]+(?:/[A-Za-z0-9-]+)?",
                r"/details/[^/?]+",
                r"/browse/entity-[A-Za-z0-9-]+",
                r"[?&](entityId|contentId|videoId)=",
            ),
        ),),
        non_content_paths=frozenset({"/", "/home"}),
        id_patterns=_rx(
            r"/(?:video|player)/([A-Za-z0-9-]+)",
            r"/(?:movies|series)/[^/]+/([A-Za-z0-9-]+)",
            r"/(?:movies?|series)/([^/?#]+)",
            r"/details/([^/?#]+)",
            r"/browse/(entity-[A-Za-z0-9-]+)",
            r"[?&](?:entityId|contentId|videoId)=([^&#]+)",
        ),
        series_key_patterns=(
            ("series", re.compile(r"/series/([^/]+)")),
            ("movie", re.compile(r"/movies?/([^/]+)")),
        ),
        title_slug_prefixes=("/series/", "/movie/", "/movies/"),
        movie_path_prefixes=("/movie/", "/movies/"),
    ),
    "prime": ServiceRule(
        service="prime",
        display_names=("Prime Video", "Amazon Prime Video", "Amazon.com"),
        domains=(
            DomainRule("primevideo.com", _rx(r"/detail/[^/]+", r"/watch/[^/?]+")),
            DomainRule("amazon.com", _rx(
                r"/gp/video/detail/[^/?]+",
                r"/gp/video/title/[^/?]+",
                r"/gp/video/play/[^/?]+",
            )),
        ),
        non_content_paths=frozenset({"/", "/storefront"}),
        non_content_path_prefixes=("/amazon-video/b/", "/gp/video/storefront"),
        non_content_titles=frozenset({"prime video"}),
        id_patterns=_rx(r"/gp/video/(?:detail|title|play)/([^/?#]+)", r"/(?:detail|watch)/([^/?#]+)"),
        series_key_patterns=(("detail", re.compile(r"/detail/([^/?]+)")),),
        title_slug_prefixes=("/gp/video/title/",),
        meta_path_prefixes=(
            "/detail/", "/watch/",
            "/gp/video/detail/", "/gp/video/title/", "/gp/video/play/",
        ),
        forward_context=(
            ("primevideo.com", ("/detail/", "/watch/")),
            ("amazon.com", ("/gp/video/detail/", "/gp/video/title/", "/gp/video/play/")),
        ),
        trust_thumbs=True,
    ),
    "max": ServiceRule(
        service="max",
        display_names=("Max", "HBO Max"),
        domains=(DomainRule(
            "max.com",
            _rx(r"/video/[A-Za-z0-9-]+", r"/series/[^/]+", r"/movie/[^/]+"),
        ),),
        non_content_paths=frozenset({"/", "/home"}),
        id_patterns=_rx(r"/video/(?:watch/)?([A-Za-z0-9-]+)", r"/(?:series|movie)/([^/?#]+)"),
        series_key_patterns=(
            ("series", re.compile(r"/series/([^/]+)")),
            ("video", re.compile(r"/video/(?:watch/)?([^/]+)")),
        ),
        title_slug_prefixes=("/series/",),
        tv_path_prefixes=("/video/",),
        trust_thumbs=True,
    ),
    "peacock": ServiceRule(
        service="peacock",
        display_names=("Peacock",),
        domains=(DomainRule("peacocktv.com"),),
        non_content_paths=frozenset({
            "/", "/start", "/home", "/browse", "/channels", "/sports", "/kids", "/account",
        }),
        non_content_titles=frozenset({"peacock"}),
        non_content_title_fragments=("home - peacock",),
        content_path_prefixes=("/watch", "/shows/", "/movies/"),
        content_query_params=("playbackId", "assetId", "asset_id", "id"),
        id_patterns=_rx(r"/watch/(?:playback|asset|play)/([^/?#]+)", r"/(?:shows|movies)/([^/?#]+)"),
        id_query_params=PEACOCK_ID_PARAMS,
        series_key_patterns=(
            ("movies", re.compile(r"/movies/([^/]+)")),
            ("shows", re.compile(r"/shows/([^/]+)")),
        ),
        title_slug_prefixes=("/shows/", "/movies/"),
        movie_path_prefixes=("/movies/",),
        tv_path_prefixes=("/shows/", "/watch"),
        tv_title_markers=("episode",),
        meta_path_prefixes=("/shows/", "/movies/"),
        generic_thumb_markers=("icons/peacock.png",),
        group_by_thumb=False,
    ),
    "paramount": ServiceRule(
        service="paramount",
        display_names=("Paramount+", "Paramount Plus"),
        domains=(DomainRule(
            "paramountplus.com",
            _rx(r"/shows/.+/video/[A-Za-z0-9]+", r"/movies/[^/]+/[A-Za-z0-9]+", r"/shows/[^/]+"),
        ),),
        non_content_paths=frozenset({"/", "/home"}),
        id_patterns=_rx(
            r"/shows/[^/]+/video/([A-Za-z0-9_-]+)",
            r"/movies/[^/]+/([A-Za-z0-9_-]+)",
            r"/shows/([^/?#]+)",
        ),
        series_key_patterns=(
            ("shows", re.compile(r"/shows/([^/]+)")),
            ("movies", re.compile(r"/movies/([^/]+)")),
        ),
        title_slug_prefixes=("/shows/",),
        movie_path_prefixes=("/movies/",),
    ),
}

# Order matters: the first matching fragment wins.
STREAMING_DOMAINS: tuple[tuple[ServiceRule, DomainRule], ...] = tuple(
    (rule, domain)
    for rule in RULES.values()
    if rule.service != "youtube"
    for domain in rule.domains
)


def rule_for_host(host: str) -> tuple[ServiceRule, DomainRule] | None:
    """Find the streaming service whose domain fragment appears in ``host``."""
    host = (host or "").lower()
    for rule, domain in STREAMING_DOMAINS:
        if domain.match in host:
            return rule, domain
    return None


def streaming_domain_fragments() -> list[str]:
    return [domain.match for _, domain in STREAMING_DOMAINS]
