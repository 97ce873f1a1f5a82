"""External title/artwork sources: page metadata, TMDB, TVMaze, iTunes, Peacock CDN."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from watch_feed.exceptions import MetadataProviderError
from watch_feed.metadata.models import MetadataHit
from watch_feed.metadata.safety import read_capped, send_checked

logger = logging.getLogger(__name__)

# Browser-like signature; streaming sites serve richer og/twitter tags to it.
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0 Safari/537.36"
)
PAGE_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,*/*",
    "Referer": "https://www.google.com/",
}

LD_JSON_TYPES = {"Movie", "TVSeries", "TVEpisode", "VideoObject"}

TMDB_SEARCH_URL = "https://api.themoviedb.org/3/search/multi"
TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p/w780"
TVMAZE_SEARCH_URL = "https://api.tvmaze.com/singlesearch/shows"
ITUNES_SEARCH_URL = "https://itunes.apple.com/search"
PEACOCK_IMAGE_BASE = "https://imageservice.disco.peacocktv.com/uuid"


async def _get_json(client: httpx.AsyncClient, name: str, url: str, params: dict) -> dict:
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise MetadataProviderError(f"{name} lookup failed: {e}") from e
    if not isinstance(data, dict):
        raise MetadataProviderError(f"{name} returned unexpected payload")
    return data


def _absolutize(image: str | None, page_url: str) -> str | None:
    if not image or not image.strip():
        return None
    image = image.strip()
    if re.match(r"^https?://", image, re.IGNORECASE):
        return image
    return urljoin(page_url, image)


def _decode(body: bytes, encoding: str | None) -> str:
    try:
        return body.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str | None:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    content = (tag.get("content") or "").strip()
    return content or None


def _ld_json_objects(soup: BeautifulSoup) -> list[dict]:
    objects = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except ValueError:
            continue
        for obj in data if isinstance(data, list) else [data]:
            if isinstance(obj, dict):
                objects.append(obj)
    return objects


def parse_page_metadata(html: str, page_url: str) -> MetadataHit | None:
    """Extract a title and image from og/twitter tags and JSON-LD.

    The og title wins over JSON-LD; og:image:secure_url wins over og:image,
    which wins over JSON-LD. Relative images are resolved against ``page_url``.
    """
    soup = BeautifulSoup(html, "html.parser")

    og_title = _meta_content(soup, property="og:title") or _meta_content(soup, name="twitter:title")
    if not og_title and soup.title and soup.title.string:
        og_title = soup.title.string.strip() or None

    secure_image = _meta_content(soup, property="og:image:secure_url")
    og_image = _meta_content(soup, property="og:image") or _meta_content(soup, name="twitter:image")

    ld_title = None
    ld_image = None
    for obj in _ld_json_objects(soup):
        types = obj.get("@type")
        types = types if isinstance(types, list) else [types]
        if not LD_JSON_TYPES.intersection(t for t in types if isinstance(t, str)):
            continue
        if not ld_title and obj.get("name"):
            ld_title = str(obj["name"]).strip() or None
        image = obj.get("image")
        if isinstance(image, list):
            image = image[0] if image else None
        if isinstance(image, dict):
            image = image.get("url")
        if not ld_image and isinstance(image, str):
            ld_image = image

    title = og_title or ld_title
    thumb = (
        _absolutize(secure_image, page_url)
        or _absolutize(og_image, page_url)
        or _absolutize(ld_image, page_url)
    )
    if not title and not thumb:
        return None
    return MetadataHit(title=title, thumb=thumb)


class PageMetadataProvider:
    """Scrape embedded metadata from a content page.

    Args:
        client: Shared async HTTP client.
        resolve_hosts: Resolve hostnames and refuse private/internal addresses.
        max_response_bytes: Maximum page size in bytes (default 1MB).
        max_redirects: Maximum number of redirects to follow (default 5).
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        resolve_hosts: bool = True,
        max_response_bytes: int = 1_048_576,
        max_redirects: int = 5,
    ):
        self.client = client
        self.resolve_hosts = resolve_hosts
        self.max_response_bytes = max_response_bytes
        self.max_redirects = max_redirects

    async def fetch(self, url: str) -> MetadataHit | None:
        try:
            response = await send_checked(
                self.client,
                "GET",
                url,
                headers=PAGE_HEADERS,
                max_redirects=self.max_redirects,
                resolve_hosts=self.resolve_hosts,
            )
            try:
                response.raise_for_status()
                body = await read_capped(response, self.max_response_bytes)
            finally:
                await response.aclose()
        except MetadataProviderError:
            raise
        except httpx.HTTPError as e:
            raise MetadataProviderError(f"Page metadata fetch failed for {url}: {e}") from e
        return parse_page_metadata(_decode(body, response.charset_encoding), str(response.url))


class TitleSearchProvider(ABC):
    """Search-by-title artwork source."""

    name = "provider"

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    @abstractmethod
    async def search(self, title: str) -> MetadataHit | None:
        """Best hit for ``title``, or None when the provider has no result."""
        ...


class TmdbProvider(TitleSearchProvider):
    """TMDB multi search (movies and TV). Requires an API key."""

    name = "TMDB"

    def __init__(self, client: httpx.AsyncClient, api_key: str):
        if not api_key:
            raise MetadataProviderError(
                "TMDB API key is required. "
                "Pass it directly or set TMDB_API_KEY in your environment."
            )
        super().__init__(client)
        self.api_key = api_key

    async def search(self, title: str) -> MetadataHit | None:
        data = await _get_json(self.client, self.name, TMDB_SEARCH_URL, {
            "api_key": self.api_key,
            "query": title,
            "include_adult": "false",
        })
        results = data.get("results") or []
        hit = results[0] if results else None
        if not hit:
            return None
        path = hit.get("backdrop_path") or hit.get("poster_path")
        if not path:
            return None
        return MetadataHit(
            title=hit.get("name") or hit.get("title") or title,
            thumb=f"{TMDB_IMAGE_BASE}{path}",
        )


class TvMazeProvider(TitleSearchProvider):
    """TVMaze single show search; no key needed."""

    name = "TVMaze"

    async def search(self, title: str) -> MetadataHit | None:
        data = await _get_json(self.client, self.name, TVMAZE_SEARCH_URL, {"q": title})
        image = data.get("image") or {}
        thumb = image.get("original") or image.get("medium")
        if not thumb:
            return None
        return MetadataHit(title=data.get("name") or title, thumb=thumb)


class ItunesProvider(TitleSearchProvider):
    """iTunes Search artwork; no key needed."""

    name = "iTunes"

    def __init__(self, client: httpx.AsyncClient, media: str = "movie"):
        super().__init__(client)
        self.media = media  # "movie" | "tvShow"

    async def search(self, title: str) -> MetadataHit | None:
        data = await _get_json(self.client, self.name, ITUNES_SEARCH_URL, {
            "term": title,
            "media": self.media,
            "limit": 1,
        })
        results = data.get("results") or []
        hit = results[0] if results else None
        if not hit:
            return None
        art = (
            hit.get("artworkUrl100")
            or hit.get("artworkUrl60")
            or hit.get("artworkUrl512")
            or hit.get("artworkUrl600")
        )
        if not art:
            return None
        return MetadataHit(
            title=hit.get("trackName") or hit.get("collectionName") or title,
            thumb=re.sub(r"/\d+x\d+bb\.", "/600x600bb.", art),
        )


def peacock_image_url(
    asset_id: str,
    variant: str = "COVER_TITLE_WIDE",
    size: str = "780x439",
    quality: int = 85,
    image_format: str = "webp",
    language: str = "eng",
    proposition: str = "NBCUOTT",
    version: str | None = None,
) -> str:
    """Build a Peacock image-service URL for an asset UUID."""
    url = (
        f"{PEACOCK_IMAGE_BASE}/{asset_id}/{variant}/{size}"
        f"?image-quality={quality}&image-format={image_format}"
        f"&language={language}&proposition={proposition}"
    )
    if version:
        url += f"&version={version}"
    return url


def peacock_image_candidates(asset_id: str) -> list[str]:
    return [
        peacock_image_url(asset_id, variant="COVER_TITLE_WIDE", size="780x439"),
        peacock_image_url(asset_id, variant="COVER_TITLE_WIDE", size="1280x720"),
        peacock_image_url(asset_id, variant="COVER_TITLE_TALL", size="600x900"),
    ]
