"""Reachability checks for candidate thumbnails."""

from __future__ import annotations

import logging

import httpx

from watch_feed.exceptions import UnsafeURLError
from watch_feed.metadata.providers import USER_AGENT
from watch_feed.metadata.safety import send_checked

logger = logging.getLogger(__name__)

IMAGE_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "image/*",
    "Referer": "https://www.google.com/",
}


class ImageProbe:
    """HEAD an image, falling back to a one-byte ranged GET for CDNs that reject HEAD.

    Images on private/internal addresses, directly or through a redirect, count
    as unreachable and no request is made to them.
    """

    def __init__(self, client: httpx.AsyncClient, resolve_hosts: bool = True, max_redirects: int = 5):
        self.client = client
        self.resolve_hosts = resolve_hosts
        self.max_redirects = max_redirects

    async def is_reachable(self, url: str) -> bool:
        attempts = (
            ("HEAD", IMAGE_HEADERS),
            ("GET", {**IMAGE_HEADERS, "Range": "bytes=0-0"}),
        )
        for method, headers in attempts:
            try:
                response = await send_checked(
                    self.client,
                    method,
                    url,
                    headers=headers,
                    max_redirects=self.max_redirects,
                    resolve_hosts=self.resolve_hosts,
                )
            except UnsafeURLError as e:
                logger.debug("Refusing image %s: %s", url, e)
                return False
            except httpx.HTTPError as e:
                logger.debug("%s check failed for %s: %s", method, url, e)
                continue
            await response.aclose()
            if response.is_success:
                return True
        return False
