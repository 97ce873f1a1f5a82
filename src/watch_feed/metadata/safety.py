"""Outbound URL checks shared by page scraping and thumbnail checks."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from urllib.parse import urlsplit

import httpx

from watch_feed.exceptions import MetadataProviderError, UnsafeURLError

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = {"http", "https"}

_BLOCKED_NETWORKS = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def _blocked(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    mapped = getattr(ip, "ipv4_mapped", None)
    return any(ip in network or (mapped is not None and mapped in network) for network in _BLOCKED_NETWORKS)


def validate_url(url: str, resolve_hosts: bool = True) -> tuple[bool, str | None]:
    """Validate a URL for safety. Returns (is_safe, error_message).

    Literal IP hosts are always checked; hostnames are resolved only when
    ``resolve_hosts`` is set.
    """
    try:
        parsed = urlsplit(url)
        hostname = parsed.hostname
    except ValueError:
        return False, "Invalid URL format"

    if parsed.scheme not in _ALLOWED_SCHEMES:
        return False, f"Blocked URL scheme: {parsed.scheme}. Only http/https allowed."
    if not hostname:
        return False, "URL has no hostname"
    if hostname in ("localhost", "0.0.0.0"):
        return False, "Blocked: localhost access not allowed"

    try:
        literal = ipaddress.ip_address(hostname)
    except ValueError:
        literal = None
    if literal is not None:
        if _blocked(literal):
            return False, f"Blocked: URL points at private/internal IP ({literal})"
        return True, None

    if not resolve_hosts:
        return True, None
    try:
        addr_infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        return False, f"Cannot resolve hostname: {hostname}"
    for addr_info in addr_infos:
        ip = ipaddress.ip_address(addr_info[4][0].split("%", 1)[0])
        if _blocked(ip):
            return False, f"Blocked: URL resolves to private/internal IP ({ip})"
    return True, None


async def check_url(url: str, resolve_hosts: bool = True) -> None:
    """Raise UnsafeURLError unless ``url`` is safe; DNS runs off the event loop."""
    if resolve_hosts:
        is_safe, error = await asyncio.to_thread(validate_url, url)
    else:
        is_safe, error = validate_url(url, resolve_hosts=False)
    if not is_safe:
        raise UnsafeURLError(error)


async def send_checked(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: dict[str, str] | None = None,
    max_redirects: int = 5,
    resolve_hosts: bool = True,
) -> httpx.Response:
    """Send a streamed request, following redirects by hand and checking every hop.

    The caller owns the returned response and must ``aclose()`` it.
    """
    await check_url(url, resolve_hosts)
    request = client.build_request(method, url, headers=headers)
    for _ in range(max_redirects + 1):
        response = await client.send(request, stream=True, follow_redirects=False)
        if response.next_request is None:
            return response
        await response.aclose()
        request = response.next_request
        try:
            await check_url(str(request.url), resolve_hosts)
        except UnsafeURLError as e:
            raise UnsafeURLError(f"Redirect blocked: {e}") from e
        logger.debug("Following redirect %s -> %s", url, request.url)
    raise httpx.TooManyRedirects(f"Exceeded {max_redirects} redirects", request=request)


async def read_capped(response: httpx.Response, max_bytes: int) -> bytes:
    """Read a streamed body, refusing anything over ``max_bytes``."""
    declared = response.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        raise MetadataProviderError(f"Response too large (>{max_bytes} bytes)")
    body = bytearray()
    async for chunk in response.aiter_bytes():
        body.extend(chunk)
        if len(body) > max_bytes:
            raise MetadataProviderError(f"Response too large (>{max_bytes} bytes)")
    return bytes(body)
