"""Known host families and URL shape checks used by the resolver and the proxy."""
from __future__ import annotations
import re
from urllib.parse import urlparse

# Restrictive CDN family: hotlink-protected, only playable through /proxy-video
TERABOX_DOMAINS = ("terabox.com", "1024terabox.com", "terabox.app")

# Hosts that only allow playback inside their own iframe player
STREAMABLE_DOMAINS = ("streamable.com",)
JUMPSHARE_DOMAINS = ("jumpshare.com",)
EMBED_DOMAINS = STREAMABLE_DOMAINS + JUMPSHARE_DOMAINS

MANIFEST_RE = re.compile(r"\.m3u8(\?|$)", re.IGNORECASE)


def hostname_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def host_matches(hostname: str, domains) -> bool:
    """Exact or subdomain match; ``evilterabox.com`` does not match ``terabox.com``."""
    hostname = (hostname or "").lower().rstrip(".")
    return any(hostname == d or hostname.endswith("." + d) for d in domains)


def is_terabox(url: str) -> bool:
    return host_matches(hostname_of(url), TERABOX_DOMAINS)


def is_streamable(url: str) -> bool:
    return host_matches(hostname_of(url), STREAMABLE_DOMAINS)


def is_jumpshare(url: str) -> bool:
    return host_matches(hostname_of(url), JUMPSHARE_DOMAINS)


def is_embed_host(url: str) -> bool:
    return host_matches(hostname_of(url), EMBED_DOMAINS)


def is_manifest_url(url: str | None) -> bool:
    return bool(url) and MANIFEST_RE.search(url) is not None
