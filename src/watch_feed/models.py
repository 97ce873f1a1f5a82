"""Data models shared across the feed pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field

SERVICES = ("youtube", "netflix", "hulu", "disney", "prime", "max", "peacock", "paramount")


@dataclass
class ContentItem:
    """One watchable entry derived from browsing history.

    ``url`` is the visited URL used for launching and is never rewritten;
    ``canonical_url`` is the normalized form used for dedup and grouping.
    """

    service: str  # one of SERVICES
    url: str
    last_visited: int  # unix ms
    title: str | None = None
    thumb: str | None = None
    id: str | None = None
    canonical_url: str | None = None
    peacock_asset_id: str | None = None

    def __post_init__(self) -> None:
        if self.service not in SERVICES:
            raise ValueError(f"Unknown service: {self.service}")
        if self.canonical_url is None:
            self.canonical_url = self.url

    def to_dict(self) -> dict:
        return {
            "service": self.service,
            "id": self.id,
            "url": self.url,
            "canonicalUrl": self.canonical_url,
            "title": self.title,
            "thumb": self.thumb,
            "lastVisited": self.last_visited,
            "peacockAssetId": self.peacock_asset_id,
        }


@dataclass
class FeedResult:
    """Output of one aggregation run."""

    recency_days: int
    items: list[ContentItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "recencyDays": self.recency_days,
        }
