"""
One title being watched: resolver → stream adapter → controller, plus the
periodic resume save and the resume seek on entry.

Usage:
    session = PlaybackSession(content, media, resolver=resolver, resume=resume_store)
    await session.start()
    ...
    session.close()
"""
from __future__ import annotations
import asyncio
import logging
from typing import Optional

from reelbox.core.config import settings
from .base import MediaEvent, PlayableContent, PlaybackState, ResolvedSource
from .controller import LOADEDMETADATA, PlayerController
from .ports import FullscreenPort, MediaElement, Scheduler, TimerHandle, LoopScheduler
from .progress import ResumeStore
from .render import RenderPlan, plan_render, visible_overlays
from .resolver import SourceResolver
from .streaming import Attachment, StreamingAdapter

log = logging.getLogger("reelbox.playback")


class PlaybackSession:
    def __init__(
        self,
        content: PlayableContent,
        media: MediaElement,
        *,
        resolver: SourceResolver,
        resume: ResumeStore,
        fullscreen: FullscreenPort | None = None,
        scheduler: Scheduler | None = None,
        adapter: StreamingAdapter | None = None,
        start_time: float = 0,
        save_interval: float | None = None,
    ):
        self.content = content
        self.media = media
        self.resolver = resolver
        self.resume = resume
        self.scheduler = scheduler or LoopScheduler()
        self.start_time = start_time
        self.save_interval = settings.progress_save_seconds if save_interval is None else save_interval

        self.controller = PlayerController(
            media,
            fullscreen=fullscreen,
            scheduler=self.scheduler,
            on_retry=self._retry,
            on_change=self._on_change,
        )
        self.adapter = adapter or StreamingAdapter()
        self.adapter.on_error = self.controller.report_error

        self.source: Optional[ResolvedSource] = None
        self.plan: Optional[RenderPlan] = None
        self.attachment: Optional[Attachment] = None
        self._save_timer: Optional[TimerHandle] = None
        self._resolve_task: Optional[asyncio.Task] = None
        self._position_restored = False
        self._closed = False

    @property
    def state(self) -> PlaybackState:
        return self.controller.state

    @property
    def overlays(self) -> dict[str, bool]:
        """Which overlays the player shows right now; all hidden until a source is planned."""
        if self.plan is None:
            return {"controls": False, "spinner": False, "play_button": False, "error": self.state.error is not None}
        return visible_overlays(self.plan, self.state)

    # ── lifecycle ──────────────────

    async def start(self) -> ResolvedSource:
        source = await self._load(self.content)
        self._schedule_save()
        return source

    async def change_content(self, content: PlayableContent, start_time: float = 0) -> ResolvedSource:
        """Switch titles; the previous engine and load timer are gone before the new source is set."""
        self.content = content
        self.start_time = start_time
        return await self._load(content)

    async def _load(self, content: PlayableContent) -> ResolvedSource:
        self._detach()
        self.controller.reset_for_new_source()
        self._position_restored = False

        source = await self.resolver.resolve(content)
        if self._closed or content is not self.content:
            return source
        self.source = source
        self.plan = plan_render(source, content.backdrop_url)

        if source.error:
            self.controller.report_error(source.error)
        elif self.plan.element == "video":
            self._assign_source()
        return source

    def close(self):
        self._closed = True
        if self._save_timer is not None:
            self._save_timer.cancel()
            self._save_timer = None
        if self._resolve_task is not None and not self._resolve_task.done():
            self._resolve_task.cancel()
        self._detach()
        self.controller.dispose()

    # ── source assignment ──────────────────

    def _detach(self):
        if self.attachment is not None:
            self.attachment.teardown()
            self.attachment = None

    def _assign_source(self):
        self._detach()
        self.attachment = self.adapter.attach(self.media, self.source.play_url, self.source.strategy)
        log.info(f"[{self.content.id}] Source assigned via {self.attachment.mode}")

    def _retry(self):
        if self._closed:
            return
        if self.source is None or self.source.error:
            # Resolution itself failed; resolve again
            self._resolve_task = asyncio.get_running_loop().create_task(self._load(self.content))
            return
        if self.plan is not None and self.plan.element == "video":
            self._assign_source()
            self.media.load()

    # ── resume ──────────────────

    def _on_change(self, state: PlaybackState, event: MediaEvent):
        if event.type != LOADEDMETADATA or self._position_restored:
            return
        self._position_restored = True
        if self.start_time > 0:
            self.controller.seek(self.start_time)
            return
        position = self.resume.resume_position(self.content.id, self.start_time)
        if position:
            log.info(f"[{self.content.id}] Resuming at {position:.0f}s")
            self.controller.seek(position)

    def _schedule_save(self):
        if self._closed or self.save_interval <= 0:
            return
        self._save_timer = self.scheduler.call_later(self.save_interval, self._save_tick)

    def _save_tick(self):
        self._save_timer = None
        if self._closed:
            return
        state = self.controller.state
        if state.is_playing:
            self.resume.save_progress(
                self.content.id, state.current_time, state.duration, self.content.to_dict())
        self._schedule_save()
