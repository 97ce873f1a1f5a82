"""Aggregate streaming-service browsing history into a "continue watching" feed."""

from watch_feed.config import FeedSettings
from watch_feed.models import ContentItem, FeedResult
from watch_feed.pipeline import FeedAggregator

__all__ = ["FeedAggregator", "FeedSettings", "ContentItem", "FeedResult"]
