"""
Streaming protocol adapter.

Puts a resolved URL on a media element. Manifest URLs go to the element's
native HLS support when it has any, otherwise through an adaptive engine
module that is imported on first use. Everything else is assigned directly.
"""
from __future__ import annotations
import asyncio
import importlib
import logging
from types import ModuleType
from typing import Awaitable, Callable, Optional

from reelbox.core.config import settings
from .base import STRATEGY_HLS
from .hosts import is_manifest_url
from .ports import MediaElement

log = logging.getLogger("reelbox.playback")

HLS_MIME = "application/vnd.apple.mpegurl"
STREAM_FAILED = "Failed to load stream"

MODE_PENDING = "pending"
MODE_DIRECT = "direct"
MODE_NATIVE = "native"
MODE_ENGINE = "engine"


async def import_engine_module(name: str) -> Optional[ModuleType]:
    try:
        return await asyncio.to_thread(importlib.import_module, name)
    except Exception as e:
        log.warning(f"Adaptive engine {name!r} unavailable: {e}")
        return None


class Attachment:
    """Handle for one source assignment; ``teardown()`` is always safe to call."""

    def __init__(self, url: str):
        self.url = url
        self.mode = MODE_PENDING
        self.engine = None
        self.cancelled = False
        self._task: Optional[asyncio.Task] = None

    async def wait(self):
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    def teardown(self):
        self.cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self.engine is not None:
            try:
                self.engine.destroy()
            except Exception as e:
                log.debug(f"Engine destroy failed: {e}")
            self.engine = None


class StreamingAdapter:
    def __init__(
        self,
        *,
        engine_module: str | None = None,
        loader: Callable[[str], Awaitable[Optional[ModuleType]]] = import_engine_module,
        on_error: Callable[[str], None] | None = None,
    ):
        self.engine_module = engine_module or settings.hls_engine_module
        self.loader = loader
        self.on_error = on_error

    def attach(self, element: MediaElement, url: str, strategy: str | None = None) -> Attachment:
        """Assign ``url`` to ``element``; the engine path needs a running loop."""
        attachment = Attachment(url)
        manifest = strategy == STRATEGY_HLS if strategy else is_manifest_url(url)

        if not manifest:
            element.set_source(url)
            attachment.mode = MODE_DIRECT
            return attachment

        if element.can_play_type(HLS_MIME):
            element.set_source(url)
            attachment.mode = MODE_NATIVE
            return attachment

        attachment._task = asyncio.get_running_loop().create_task(
            self._attach_engine(attachment, element, url))
        return attachment

    async def _attach_engine(self, attachment: Attachment, element: MediaElement, url: str):
        try:
            module = await self.loader(self.engine_module)
        except Exception as e:
            log.warning(f"Adaptive engine {self.engine_module!r} failed to load: {e}")
            module = None
        if attachment.cancelled:
            return

        engine_cls = getattr(module, "Engine", None) if module else None
        try:
            supported = engine_cls is not None and engine_cls.is_supported()
        except Exception as e:
            log.warning(f"Adaptive engine support check failed: {e}")
            supported = False
        if not supported:
            log.info(f"No adaptive engine, assigning manifest directly: {url}")
            element.set_source(url)
            attachment.mode = MODE_DIRECT
            return

        events = module.Events
        engine = engine_cls(enable_worker=True)
        attachment.engine = engine
        attachment.mode = MODE_ENGINE

        def _on_attached(event, data):
            if not attachment.cancelled:
                engine.load_source(url)

        def _on_error(event, data):
            if attachment.cancelled or not (data or {}).get("fatal", True):
                return
            log.warning(f"Adaptive engine error for {url}: {data}")
            if self.on_error:
                self.on_error(STREAM_FAILED)

        engine.on(events.MEDIA_ATTACHED, _on_attached)
        engine.on(events.ERROR, _on_error)
        engine.attach_media(element)
