"""Walk the visit graph to find a richer page near an opaque watch URL."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from watch_feed.exceptions import HistoryError
from watch_feed.history.reader import HistoryStore
from watch_feed.services.rules import RULES

logger = logging.getLogger(__name__)


def _matches_context(url: str, shapes: tuple[tuple[str, tuple[str, ...]], ...]) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    host = (parts.hostname or "").lower()
    path = parts.path.lower()
    for host_fragment, prefixes in shapes:
        if host_fragment in host and path.startswith(prefixes):
            return True
    return False


class ContextResolver:
    """Bounded best-effort search over ``from_visit`` links.

    Args:
        store: An open history store.
        max_depth: Maximum hops from the starting visit.
        fan_out: Maximum children followed per visit on forward search.
    """

    def __init__(self, store: HistoryStore, max_depth: int = 5, fan_out: int = 6):
        self.store = store
        self.max_depth = max_depth
        self.fan_out = fan_out

    def forward_context(self, visit_id: int, service: str) -> str | None:
        """Breadth-first search over visits that navigated from ``visit_id``.

        Closer hops win. Returns None when nothing matches or the store fails.
        """
        shapes = RULES[service].forward_context
        if not shapes:
            return None

        frontier = [visit_id]
        seen = {visit_id}
        try:
            for _ in range(self.max_depth):
                next_frontier = []
                for current in frontier:
                    for child in self.store.child_visits(current, self.fan_out):
                        if child.visit_id in seen:
                            continue
                        seen.add(child.visit_id)
                        next_frontier.append(child.visit_id)
                        if _matches_context(child.url, shapes):
                            return child.url
                frontier = next_frontier
                if not frontier:
                    break
        except HistoryError as e:
            logger.debug("Forward context search from visit %s aborted: %s", visit_id, e)
        return None

    def backward_context(self, url: str, service: str) -> str | None:
        """Follow ``from_visit`` parents of the latest visit to ``url``."""
        shapes = RULES[service].backward_context
        if not shapes:
            return None

        try:
            start = self.store.latest_visit_for_url(url)
            if start is None:
                return None
            seen = {start.visit_id}
            current = start.parent_visit_id
            for _ in range(self.max_depth):
                if not current or current in seen:
                    break
                seen.add(current)
                hop = self.store.visit(current)
                if hop is None:
                    break
                if _matches_context(hop.url, shapes):
                    return hop.url
                current = hop.parent_visit_id
        except HistoryError as e:
            logger.debug("Backward context search for %s aborted: %s", url, e)
        return None
