"""
Bundled adaptive-streaming engine for manifest (m3u8) sources.

Loaded on demand by the streaming adapter. It fetches and validates the
manifest, records the variant levels and hands the manifest to the media
element. Bitrate switching is left to whatever decodes the element's source.
"""
from __future__ import annotations
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urljoin

import httpx

log = logging.getLogger("reelbox.playback.hls")

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

ATTR_RE = re.compile(r'([A-Z0-9-]+)=("[^"]*"|[^,]*)')


class Events:
    MEDIA_ATTACHED = "hlsMediaAttached"
    MEDIA_DETACHED = "hlsMediaDetached"
    MANIFEST_LOADING = "hlsManifestLoading"
    MANIFEST_PARSED = "hlsManifestParsed"
    ERROR = "hlsError"


@dataclass
class Level:
    url: str
    bandwidth: int = 0
    width: int = 0
    height: int = 0

    @property
    def label(self) -> str:
        return f"{self.height}p" if self.height else "unknown"


def parse_attributes(line: str) -> dict[str, str]:
    _, _, attrs = line.partition(":")
    return {k: v.strip('"') for k, v in ATTR_RE.findall(attrs)}


def parse_manifest(text: str, base_url: str) -> list[Level]:
    """Variant levels of a master playlist; empty for a media playlist."""
    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    if not lines or not lines[0].startswith("#EXTM3U"):
        raise ValueError("Not an m3u8 playlist")

    levels: list[Level] = []
    pending: Optional[dict] = None
    for line in lines[1:]:
        if line.startswith("#EXT-X-STREAM-INF"):
            pending = parse_attributes(line)
        elif line.startswith("#"):
            continue
        elif pending is not None:
            width, _, height = pending.get("RESOLUTION", "").partition("x")
            levels.append(Level(
                url=urljoin(base_url, line),
                bandwidth=int(pending.get("BANDWIDTH", 0) or 0),
                width=int(width) if width.isdigit() else 0,
                height=int(height) if height.isdigit() else 0,
            ))
            pending = None
    return levels


class Engine:
    def __init__(self, *, enable_worker: bool = True, timeout: float = 15,
                 transport: httpx.AsyncBaseTransport | None = None):
        self.enable_worker = enable_worker
        self.timeout = timeout
        self.transport = transport
        self.media = None
        self.url: Optional[str] = None
        self.levels: list[Level] = []
        self._handlers: dict[str, list[Callable]] = {}
        self._task: Optional[asyncio.Task] = None
        self._destroyed = False

    @classmethod
    def is_supported(cls) -> bool:
        return True

    def on(self, event: str, callback: Callable):
        self._handlers.setdefault(event, []).append(callback)

    def _emit(self, event: str, data: dict | None = None):
        for cb in list(self._handlers.get(event, [])):
            cb(event, data or {})

    def attach_media(self, media):
        self.media = media
        # Attach completes on the next loop iteration, like a real MSE attach
        asyncio.get_running_loop().call_soon(self._attached)

    def _attached(self):
        if not self._destroyed and self.media is not None:
            self._emit(Events.MEDIA_ATTACHED, {"media": self.media})

    def load_source(self, url: str):
        self.url = url
        self._task = asyncio.get_running_loop().create_task(self._load(url))

    async def _load(self, url: str):
        self._emit(Events.MANIFEST_LOADING, {"url": url})
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True,
                                         headers={"User-Agent": DEFAULT_UA},
                                         transport=self.transport) as client:
                resp = await client.get(url)
        except httpx.HTTPError as e:
            log.warning(f"Manifest fetch failed for {url}: {e}")
            self._emit(Events.ERROR, {"type": "networkError", "details": "manifestLoadError", "fatal": True})
            return
        if resp.status_code >= 400:
            self._emit(Events.ERROR, {"type": "networkError", "details": "manifestLoadError",
                                      "fatal": True, "status": resp.status_code})
            return

        try:
            if self.enable_worker:
                levels = await asyncio.to_thread(parse_manifest, resp.text, str(resp.url))
            else:
                levels = parse_manifest(resp.text, str(resp.url))
        except ValueError as e:
            log.warning(f"Manifest parse failed for {url}: {e}")
            self._emit(Events.ERROR, {"type": "mediaError", "details": "manifestParsingError", "fatal": True})
            return

        if self._destroyed or self.media is None:
            return
        self.levels = levels
        self.media.set_source(url)
        log.info(f"Manifest parsed: {len(levels)} level(s) for {url}")
        self._emit(Events.MANIFEST_PARSED, {"levels": levels})

    def destroy(self):
        self._destroyed = True
        if self._task and not self._task.done():
            self._task.cancel()
        if self.media is not None:
            self._emit(Events.MEDIA_DETACHED)
            self.media = None
        self._handlers.clear()
