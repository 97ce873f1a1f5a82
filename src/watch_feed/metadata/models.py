"""Data models for the metadata module."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MetadataHit:
    """Title and/or image found for one piece of content."""

    title: str | None = None
    thumb: str | None = None
