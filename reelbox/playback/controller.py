"""
Playback controller.

``reduce`` is the whole state machine: a pure function from (state, event) to
the next state. ``PlayerController`` feeds it media-element notifications and
user input, and owns the side effects the reducer cannot have: driving the
media element, the load-timeout timer and the controls auto-hide timer.
"""
from __future__ import annotations
import logging
from dataclasses import replace
from typing import Callable, Optional

from reelbox.core.config import settings
from .base import MediaEvent, PlaybackState
from .ports import FullscreenPort, MediaElement, Scheduler, TimerHandle, LoopScheduler

log = logging.getLogger("reelbox.playback")

PLAYBACK_SPEEDS = (0.25, 0.5, 0.75, 1, 1.25, 1.5, 1.75, 2)
QUALITY_OPTIONS = (
    ("Auto", "auto"),
    ("1080p", "1080p"),
    ("720p", "720p"),
    ("480p", "480p"),
    ("360p", "360p"),
)
QUALITY_VALUES = tuple(value for _, value in QUALITY_OPTIONS)

SKIP_SECONDS = 10
VOLUME_STEP = 10

LOAD_FAILED = "Failed to load video"
LOAD_TIMEOUT_MESSAGE = "Video is taking too long to load. Please try again."

# Media element notifications
TIMEUPDATE = "timeupdate"
LOADEDMETADATA = "loadedmetadata"
PROGRESS = "progress"
PLAY = "play"
PAUSE = "pause"
ERROR = "error"
LOADSTART = "loadstart"
CANPLAY = "canplay"
LOADEDDATA = "loadeddata"
WAITING = "waiting"
STALLED = "stalled"
SUSPEND = "suspend"
FULLSCREEN_CHANGE = "fullscreenchange"

# Controller-originated events
LOAD_TIMEOUT = "load_timeout"
POINTER_MOVE = "pointermove"
POINTER_LEAVE = "pointerleave"
HIDE_CONTROLS = "hide_controls"
SEEK = "seek"
VOLUME = "volume"
MUTE = "mute"
RATE = "rate"
QUALITY = "quality"
RETRY = "retry"


def clamp(value, low, high):
    return max(low, min(value, high))


def reduce(state: PlaybackState, event: MediaEvent) -> PlaybackState:
    t, v = event.type, event.value

    if t == TIMEUPDATE:
        return replace(state, current_time=float(v))
    if t == LOADEDMETADATA:
        return replace(state, duration=float(v))
    if t == PROGRESS:
        # value: buffered ranges as (start, end) pairs
        if not v:
            return state
        return replace(state, buffered_end=float(v[-1][1]))
    if t == PLAY:
        return replace(state, is_playing=True)
    if t == PAUSE:
        return replace(state, is_playing=False)
    if t == ERROR:
        return replace(state, error=v or LOAD_FAILED, is_loading=False)
    if t in (LOADSTART, WAITING, STALLED):
        return replace(state, is_loading=True)
    if t in (CANPLAY, LOADEDDATA, SUSPEND):
        return replace(state, is_loading=False)
    if t == LOAD_TIMEOUT:
        return replace(state, is_loading=False, error=LOAD_TIMEOUT_MESSAGE)
    if t == FULLSCREEN_CHANGE:
        return replace(state, is_fullscreen=bool(v))
    if t == POINTER_MOVE:
        return replace(state, show_controls=True)
    if t in (POINTER_LEAVE, HIDE_CONTROLS):
        return replace(state, show_controls=False)
    if t == SEEK:
        return replace(state, current_time=float(v))
    if t == VOLUME:
        return replace(state, volume=int(v), is_muted=int(v) == 0)
    if t == MUTE:
        return replace(state, is_muted=bool(v))
    if t == RATE:
        return replace(state, playback_speed=v)
    if t == QUALITY:
        return replace(state, selected_quality=v)
    if t == RETRY:
        return replace(state, error=None, is_loading=False)
    return state


class PlayerController:
    def __init__(
        self,
        media: MediaElement,
        *,
        fullscreen: FullscreenPort | None = None,
        scheduler: Scheduler | None = None,
        load_timeout: float | None = None,
        controls_hide_after: float | None = None,
        on_retry: Callable[[], None] | None = None,
        on_change: Callable[[PlaybackState, MediaEvent], None] | None = None,
    ):
        self.media = media
        self.fullscreen = fullscreen
        self.scheduler = scheduler or LoopScheduler()
        self.load_timeout = settings.load_timeout_seconds if load_timeout is None else load_timeout
        self.controls_hide_after = (
            settings.controls_hide_seconds if controls_hide_after is None else controls_hide_after)
        self.on_retry = on_retry
        self.on_change = on_change
        self.state = PlaybackState()
        self._load_timer: Optional[TimerHandle] = None
        self._load_generation = 0
        self._hide_timer: Optional[TimerHandle] = None
        self._disposed = False

    # ── state ──────────────────

    def dispatch(self, event: MediaEvent | str, value=None) -> PlaybackState:
        if isinstance(event, str):
            event = MediaEvent(event, value)
        if self._disposed:
            return self.state
        self.state = reduce(self.state, event)
        self._sync_controls_timer()
        if self.on_change:
            self.on_change(self.state, event)
        return self.state

    # ── media element notifications ──────────────────

    def handle_media_event(self, name: str, value=None) -> PlaybackState:
        if name == LOADSTART:
            self._start_load_timer()
        elif name in (CANPLAY, LOADEDDATA, ERROR):
            self._clear_load_timer()
        return self.dispatch(name, value)

    def fullscreen_changed(self, active: bool) -> PlaybackState:
        return self.dispatch(FULLSCREEN_CHANGE, active)

    def report_error(self, message: str) -> PlaybackState:
        """Errors raised outside the media element (adaptive engine, resolver)."""
        self._clear_load_timer()
        return self.dispatch(ERROR, message)

    # ── load timeout ──────────────────

    def _start_load_timer(self):
        self._clear_load_timer()
        self._load_generation += 1
        generation = self._load_generation

        def _fire():
            if self._disposed or generation != self._load_generation or self._load_timer is None:
                return
            self._load_timer = None
            log.warning(f"Load timed out after {self.load_timeout}s")
            self.dispatch(LOAD_TIMEOUT)

        self._load_timer = self.scheduler.call_later(self.load_timeout, _fire)

    def _clear_load_timer(self):
        if self._load_timer is not None:
            self._load_timer.cancel()
            self._load_timer = None
        self._load_generation += 1

    # ── controls auto-hide ──────────────────

    def _sync_controls_timer(self):
        if self.state.show_controls and self.state.is_playing:
            if self._hide_timer is None:
                self._hide_timer = self.scheduler.call_later(self.controls_hide_after, self._hide_controls)
        elif self._hide_timer is not None:
            self._hide_timer.cancel()
            self._hide_timer = None

    def _hide_controls(self):
        self._hide_timer = None
        if self.state.is_playing:
            self.dispatch(HIDE_CONTROLS)

    def pointer_moved(self) -> PlaybackState:
        if self._hide_timer is not None:
            self._hide_timer.cancel()
            self._hide_timer = None
        return self.dispatch(POINTER_MOVE)

    def pointer_left(self) -> PlaybackState:
        return self.dispatch(POINTER_LEAVE)

    # ── user operations ──────────────────

    def toggle_play(self) -> PlaybackState:
        if self.state.is_playing:
            self.media.pause()
            return self.dispatch(PAUSE)
        self.media.play()
        return self.dispatch(PLAY)

    def seek(self, seconds: float) -> PlaybackState:
        target = clamp(float(seconds), 0.0, self.state.duration)
        self.media.seek(target)
        return self.dispatch(SEEK, target)

    def skip(self, seconds: float) -> PlaybackState:
        return self.seek(self.state.current_time + seconds)

    def set_volume(self, level: float) -> PlaybackState:
        level = int(clamp(round(level), 0, 100))
        self.media.set_volume(level / 100)
        self.media.set_muted(level == 0)
        return self.dispatch(VOLUME, level)

    def adjust_volume(self, delta: float) -> PlaybackState:
        return self.set_volume(self.state.volume + delta)

    def toggle_mute(self) -> PlaybackState:
        muted = not self.state.is_muted
        self.media.set_muted(muted)
        return self.dispatch(MUTE, muted)

    def toggle_fullscreen(self) -> PlaybackState:
        # State follows fullscreen_changed(); leaving via Esc never passes through here
        if self.fullscreen is None:
            return self.state
        if self.state.is_fullscreen:
            self.fullscreen.exit()
        else:
            self.fullscreen.request()
        return self.state

    def set_speed(self, speed: float) -> PlaybackState:
        if speed not in PLAYBACK_SPEEDS:
            raise ValueError(f"Unsupported playback speed: {speed}")
        self.media.set_rate(speed)
        return self.dispatch(RATE, speed)

    def set_quality(self, quality: str) -> PlaybackState:
        # Label only; the source is not switched
        if quality not in QUALITY_VALUES:
            raise ValueError(f"Unknown quality: {quality}")
        log.info(f"Quality changed to: {quality}")
        return self.dispatch(QUALITY, quality)

    def retry(self) -> PlaybackState:
        self._clear_load_timer()
        self.dispatch(RETRY)
        if self.on_retry:
            self.on_retry()
        else:
            self.media.load()
        return self.state

    # ── keyboard ──────────────────

    def handle_key(self, code: str, *, focused: bool = True) -> bool:
        """Returns True when the key was consumed."""
        if not focused:
            return False
        actions = {
            "Space": self.toggle_play,
            "ArrowLeft": lambda: self.skip(-SKIP_SECONDS),
            "ArrowRight": lambda: self.skip(SKIP_SECONDS),
            "ArrowUp": lambda: self.adjust_volume(VOLUME_STEP),
            "ArrowDown": lambda: self.adjust_volume(-VOLUME_STEP),
            "KeyM": self.toggle_mute,
            "KeyF": self.toggle_fullscreen,
        }
        action = actions.get(code)
        if action is None:
            return False
        action()
        return True

    # ── lifecycle ──────────────────

    def reset_for_new_source(self) -> PlaybackState:
        """Drop per-source state, keeping the viewer's volume, mute, speed and fullscreen."""
        self._clear_load_timer()
        prev = self.state
        self.state = PlaybackState(
            is_muted=prev.is_muted,
            volume=prev.volume,
            is_fullscreen=prev.is_fullscreen,
            selected_quality=prev.selected_quality,
            playback_speed=prev.playback_speed,
        )
        self._sync_controls_timer()
        return self.state

    def dispose(self):
        self._clear_load_timer()
        if self._hide_timer is not None:
            self._hide_timer.cancel()
            self._hide_timer = None
        self._disposed = True
