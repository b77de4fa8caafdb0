"""
Range-passthrough proxy for hotlink-protected hosts.

Only the terabox family is reachable through it; the allow-list is what keeps
/proxy-video from being an open relay.
"""
from __future__ import annotations
import logging
from urllib.parse import urlparse, ParseResult

import httpx

from reelbox.core.config import settings
from reelbox.core.errors import ProxyValidationError, UpstreamError
from reelbox.playback.hosts import TERABOX_DOMAINS, host_matches

log = logging.getLogger("reelbox.api")

BROWSER_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124 Safari/537.36"
)

PASSTHROUGH_HEADERS = ("content-type", "accept-ranges", "content-range", "content-length")


def validate_target(url: str | None) -> ParseResult:
    if not url:
        raise ProxyValidationError("Missing url")
    try:
        target = urlparse(url)
        hostname = target.hostname
        target.port  # raises on a malformed port
    except ValueError:
        raise ProxyValidationError("Invalid url")
    if target.scheme not in ("http", "https") or not hostname:
        raise ProxyValidationError("Invalid url")
    if not host_matches(hostname, TERABOX_DOMAINS):
        log.warning(f"Proxy refused host {hostname}")
        raise ProxyValidationError("Host not allowed")
    return target


def origin_of(target: ParseResult) -> str:
    """scheme://host[:port], never including userinfo."""
    host = target.hostname
    if ":" in host:
        host = f"[{host}]"
    port = target.port
    return f"{target.scheme}://{host}:{port}" if port else f"{target.scheme}://{host}"


def upstream_request_headers(target: ParseResult, range_header: str | None) -> dict[str, str]:
    headers = {
        "User-Agent": BROWSER_UA,
        "Accept": "*/*",
        # Hotlink protection checks the referer against the host's own origin
        "Referer": f"{origin_of(target)}/",
    }
    if range_header:
        headers["Range"] = range_header
    return headers


def passthrough_headers(upstream: httpx.Headers) -> dict[str, str]:
    headers = {name: upstream[name] for name in PASSTHROUGH_HEADERS if name in upstream}
    headers["access-control-allow-origin"] = "*"
    return headers


def get_upstream_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(follow_redirects=True, timeout=settings.proxy_timeout)


async def open_upstream(client: httpx.AsyncClient, target: ParseResult,
                        range_header: str | None) -> httpx.Response:
    request = client.build_request(
        "GET", target.geturl(), headers=upstream_request_headers(target, range_header))
    try:
        return await client.send(request, stream=True)
    except httpx.HTTPError as e:
        log.error(f"Upstream fetch failed for {target.hostname}: {e}")
        raise UpstreamError(str(e)) from e
