"""YouTube URL shapes: watch, shorts and youtu.be short links."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit


def extract_youtube_id(url: str) -> str | None:
    """Return the video id from any supported YouTube URL, else None."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None

    host = (parts.hostname or "").lower()
    segments = [s for s in parts.path.split("/") if s]
    if "youtu.be" in host:
        return segments[0] if segments else None
    if "youtube.com" not in host:
        return None
    if len(segments) >= 2 and segments[0] == "shorts":
        return segments[1]
    if segments[:1] == ["watch"]:
        values = parse_qs(parts.query).get("v")
        return values[0] if values and values[0] else None
    return None


def youtube_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def youtube_thumb_url(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg"
