"""Test doubles for the playback ports."""
import pytest


class FakeTimer:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual clock: nothing fires until advance() passes a timer's deadline."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]


class FakeMedia:
    def __init__(self, native_hls=""):
        self.native_hls = native_hls
        self.calls = []
        self.sources = []
        self.position = 0.0
        self.volume = 1.0
        self.muted = False
        self.rate = 1.0
        self.loads = 0

    def play(self):
        self.calls.append("play")

    def pause(self):
        self.calls.append("pause")

    def seek(self, seconds):
        self.calls.append(("seek", seconds))
        self.position = seconds

    def set_volume(self, level):
        self.volume = level

    def set_muted(self, muted):
        self.muted = muted

    def set_rate(self, rate):
        self.rate = rate

    def can_play_type(self, mime):
        return self.native_hls

    def set_source(self, url):
        self.sources.append(url)

    def load(self):
        self.loads += 1


class FakeFullscreen:
    def __init__(self):
        self.requests = 0
        self.exits = 0

    def request(self):
        self.requests += 1

    def exit(self):
        self.exits += 1


class FakeStorage:
    def __init__(self, *, public_error=None, signed=None, signed_error=None):
        self.public_error = public_error
        self.signed = signed
        self.signed_error = signed_error
        self.public_calls = []
        self.signed_calls = []
        self.removed = []
        self.uploaded = []

    async def get_public_url(self, path):
        self.public_calls.append(path)
        if self.public_error:
            raise self.public_error
        return f"https://cdn.example.com/public/{path}"

    async def get_signed_url(self, path, expires_in):
        self.signed_calls.append((path, expires_in))
        if self.signed_error:
            raise self.signed_error
        return self.signed

    async def upload(self, path, data, content_type):
        self.uploaded.append((path, len(data), content_type))
        return f"https://cdn.example.com/public/{path}"

    async def remove(self, path):
        self.removed.append(path)
        return True


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def media():
    return FakeMedia()


@pytest.fixture
def fullscreen():
    return FakeFullscreen()
