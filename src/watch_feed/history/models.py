"""Data models for the history store."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class VisitRecord:
    """A single row from the Chromium ``visits``/``urls`` join."""

    url: str
    title: str | None
    visit_time_raw: int  # microseconds since 1601-01-01
    visit_id: int
    parent_visit_id: int | None = None


@dataclass
class BrowserProfile:
    """A browser profile directory that holds a History DB."""

    id: str  # "Default", "Profile 1", ...
    label: str
    path: Path
    mtime: float
