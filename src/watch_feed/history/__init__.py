"""Browser history data access (Brave/Chrome History DB)."""

from watch_feed.history.reader import (
    BraveHistoryStore,
    HistoryStore,
    chrome_time_to_ms,
    list_profiles,
    ms_to_chrome_time,
    resolve_history_path,
)
from watch_feed.history.models import BrowserProfile, VisitRecord

__all__ = [
    "BraveHistoryStore",
    "HistoryStore",
    "chrome_time_to_ms",
    "ms_to_chrome_time",
    "list_profiles",
    "resolve_history_path",
    "BrowserProfile",
    "VisitRecord",
]
