"""
Source resolver: decides how a title is played and where its bytes come from.

Usage:
    resolver = SourceResolver(storage)
    source = await resolver.resolve(PlayableContent.from_movie(movie))
"""
from __future__ import annotations
import asyncio
import logging
from urllib.parse import quote

from reelbox.core.config import settings
from .base import (
    FALLBACK_VIDEO_URL, STRATEGY_FILE, STRATEGY_HLS,
    PlayableContent, ResolvedSource, SourceClassification, SourceKind,
)
from .hosts import is_embed_host, is_manifest_url, is_terabox
from .ports import StoragePort

log = logging.getLogger("reelbox.playback")

PROXY_PATH = "/proxy-video"
LOAD_FAILED = "Failed to load video"


def proxied_url(original_url: str) -> str:
    return f"{PROXY_PATH}?url={quote(original_url, safe='')}"


def classify(content: PlayableContent) -> SourceClassification:
    """Pure classification; no storage calls."""
    if content.video_file_path:
        return SourceClassification.stored_file(content.video_file_path)
    if content.video_url:
        if is_terabox(content.video_url):
            return SourceClassification.proxied_url(content.video_url)
        if is_embed_host(content.video_url):
            return SourceClassification.embed_iframe(content.video_url)
        return SourceClassification.direct_url(content.video_url)
    return SourceClassification.fallback()


def _with_strategy(source: ResolvedSource) -> ResolvedSource:
    source.strategy = STRATEGY_HLS if is_manifest_url(source.play_url) else STRATEGY_FILE
    return source


class SourceResolver:
    def __init__(self, storage: StoragePort | None = None, *, signed_url_expiry: int | None = None):
        self.storage = storage
        self.signed_url_expiry = signed_url_expiry or settings.signed_url_expiry

    async def resolve(self, content: PlayableContent) -> ResolvedSource:
        classification = classify(content)
        kind = classification.kind.value

        if content.video_file_path:
            return _with_strategy(await self._resolve_stored(content.video_file_path, classification))

        if content.video_url:
            url = content.video_url
            if classification.kind is SourceKind.PROXIED_URL:
                # Restrictive hosts forbid direct download links
                source = ResolvedSource(classification, play_url=proxied_url(url), download_url=None)
            else:
                source = ResolvedSource(classification, play_url=url, download_url=url)
            log.info(f"[{content.id}] Resolved as {kind}")
            return _with_strategy(source)

        log.info(f"[{content.id}] No media attached, using sample video")
        return _with_strategy(ResolvedSource(
            classification, play_url=FALLBACK_VIDEO_URL, download_url=FALLBACK_VIDEO_URL))

    async def _resolve_stored(self, path: str, classification: SourceClassification) -> ResolvedSource:
        if self.storage is None:
            log.error(f"No storage configured for stored file {path}")
            return ResolvedSource(classification, play_url=None, error=LOAD_FAILED)

        public, signed = await asyncio.gather(
            self.storage.get_public_url(path),
            self.storage.get_signed_url(path, self.signed_url_expiry),
            return_exceptions=True,
        )
        if isinstance(public, BaseException):
            log.error(f"Error loading video URL for {path}: {public}")
            return ResolvedSource(classification, play_url=None, error=LOAD_FAILED)
        if isinstance(signed, BaseException):
            log.warning(f"Signed URL failed for {path}, using public URL: {signed}")
            signed = None
        return ResolvedSource(classification, play_url=public, download_url=signed or public)
