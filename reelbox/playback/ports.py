"""
Capability interfaces the playback core depends on.

Concrete adapters live next to the code that owns the resource (storage
service, key-value stores, the asyncio scheduler below); tests pass fakes.
"""
from __future__ import annotations
import asyncio
from typing import Callable, Optional, Protocol, runtime_checkable


@runtime_checkable
class StoragePort(Protocol):
    """Object storage holding uploaded media."""

    async def get_public_url(self, path: str) -> str:
        ...

    async def get_signed_url(self, path: str, expires_in: int) -> Optional[str]:
        """Time-limited URL, or None when the service refuses to sign."""
        ...

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        ...

    async def remove(self, path: str) -> bool:
        ...


@runtime_checkable
class KeyValueStore(Protocol):
    """Plain string key-value persistence (the browser's localStorage)."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def update(self, key: str, fn: Callable[[Optional[str]], Optional[str]]) -> None:
        """Read-modify-write ``key`` in one step; ``fn`` returning None leaves it unchanged."""
        ...


@runtime_checkable
class MediaElement(Protocol):
    """The playback element the controller and the stream adapter drive."""

    def play(self) -> None:
        ...

    def pause(self) -> None:
        ...

    def seek(self, seconds: float) -> None:
        ...

    def set_volume(self, level: float) -> None:
        """Level in [0, 1]."""
        ...

    def set_muted(self, muted: bool) -> None:
        ...

    def set_rate(self, rate: float) -> None:
        ...

    def can_play_type(self, mime: str) -> str:
        """'' when unsupported, 'maybe' or 'probably' otherwise."""
        ...

    def set_source(self, url: Optional[str]) -> None:
        ...

    def load(self) -> None:
        ...


@runtime_checkable
class FullscreenPort(Protocol):
    def request(self) -> None:
        ...

    def exit(self) -> None:
        ...


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class LoopScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)
