"""Process-lifetime lookup cache for metadata results."""

from __future__ import annotations

from collections import OrderedDict

from watch_feed.metadata.models import MetadataHit
from watch_feed.models import ContentItem

CacheKey = tuple[str, str, str]


class MetadataCache:
    """Maps ``(service, asset id, canonical url)`` to a hit or to ``None``.

    A stored ``None`` means "looked up, nothing found" and is still a hit.
    ``max_entries=None`` keeps everything; an int evicts least recently used.
    """

    def __init__(self, max_entries: int | None = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1 or None")
        self.max_entries = max_entries
        self._entries: OrderedDict[CacheKey, MetadataHit | None] = OrderedDict()

    @staticmethod
    def key_for(item: ContentItem) -> CacheKey:
        return (item.service, item.peacock_asset_id or "", item.canonical_url or item.url)

    def lookup(self, key: CacheKey) -> tuple[bool, MetadataHit | None]:
        if key not in self._entries:
            return False, None
        self._entries.move_to_end(key)
        return True, self._entries[key]

    def store(self, key: CacheKey, value: MetadataHit | None) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
