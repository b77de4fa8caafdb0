import asyncio
from types import SimpleNamespace

from reelbox.playback.base import PlayableContent
from reelbox.playback.controller import LOAD_FAILED
from reelbox.playback.progress import MemoryStore, ResumeStore
from reelbox.playback.resolver import SourceResolver
from reelbox.playback.session import PlaybackSession
from reelbox.playback.streaming import StreamingAdapter

from conftest import FakeMedia, FakeScheduler, FakeStorage

MP4 = PlayableContent(id="m1", title="Heat", video_url="https://cdn.example.com/heat.mp4")
HLS = PlayableContent(id="m2", title="Ronin", video_url="https://cdn.example.com/ronin/master.m3u8")
EMBED = PlayableContent(id="m3", title="Clip", video_url="https://streamable.com/abc123")
STORED = PlayableContent(id="m4", title="Thief", video_file_path="videos/m4_video_1.mp4")


def build(content=MP4, *, storage=None, start_time=0, loader=None, resume=None):
    scheduler = FakeScheduler()
    media = FakeMedia()
    resume = resume or ResumeStore(MemoryStore())
    adapter = StreamingAdapter(loader=loader) if loader else StreamingAdapter()
    session = PlaybackSession(
        content, media,
        resolver=SourceResolver(storage or FakeStorage(), signed_url_expiry=60),
        resume=resume,
        scheduler=scheduler,
        adapter=adapter,
        start_time=start_time,
        save_interval=10,
    )
    return session, media, scheduler, resume


def test_start_assigns_direct_source():
    session, media, _, _ = build()
    source = asyncio.run(session.start())

    assert source.play_url == MP4.video_url
    assert media.sources == [MP4.video_url]
    assert session.plan.element == "video"


def test_embed_source_is_not_assigned_to_media():
    session, media, _, _ = build(EMBED)
    asyncio.run(session.start())
    assert session.plan.element == "iframe"
    assert media.sources == []


def test_resumes_from_saved_position():
    resume = ResumeStore(MemoryStore())
    resume.save_progress("m1", 300, 1000)
    session, media, _, _ = build(resume=resume)
    asyncio.run(session.start())

    session.controller.handle_media_event("loadedmetadata", 1000)
    assert media.position == 300
    assert session.state.current_time == 300

    # Later metadata events (e.g. a retry) do not jump again
    session.controller.seek(500)
    session.controller.handle_media_event("loadedmetadata", 1000)
    assert media.position == 500


def test_start_time_overrides_saved_position():
    resume = ResumeStore(MemoryStore())
    resume.save_progress("m1", 300, 1000)
    session, media, _, _ = build(resume=resume, start_time=45)
    asyncio.run(session.start())

    session.controller.handle_media_event("loadedmetadata", 1000)
    assert media.position == 45


def test_progress_saved_every_interval_while_playing():
    session, _, scheduler, resume = build()
    asyncio.run(session.start())
    controller = session.controller
    controller.handle_media_event("loadedmetadata", 1000)
    controller.handle_media_event("timeupdate", 120)

    scheduler.advance(10)
    assert resume.entries() == []

    controller.toggle_play()
    scheduler.advance(10)
    assert resume.get_last_watched_time("m1") == 120

    controller.handle_media_event("timeupdate", 130)
    scheduler.advance(10)
    entry = resume.entries()[0]
    assert entry.current_time == 130
    assert entry.movie["title"] == "Heat"


def test_close_cancels_timers():
    session, _, scheduler, resume = build()
    asyncio.run(session.start())
    session.controller.handle_media_event("loadedmetadata", 1000)
    session.controller.handle_media_event("timeupdate", 120)
    session.controller.toggle_play()
    session.controller.handle_media_event("loadstart")

    session.close()
    scheduler.advance(60)

    assert scheduler.pending == []
    assert resume.entries() == []
    assert session.state.error is None


def test_storage_failure_surfaces_error():
    session, media, _, _ = build(STORED, storage=FakeStorage(public_error=RuntimeError("down")))
    source = asyncio.run(session.start())

    assert source.error == LOAD_FAILED
    assert session.state.error == LOAD_FAILED
    assert media.sources == []


def test_retry_after_resolve_failure_resolves_again():
    storage = FakeStorage(public_error=RuntimeError("down"))
    session, media, _, _ = build(STORED, storage=storage)

    async def run():
        await session.start()
        storage.public_error = None
        session.controller.retry()
        await session._resolve_task

    asyncio.run(run())
    assert len(storage.public_calls) == 2
    assert session.state.error is None
    assert media.sources == ["https://cdn.example.com/public/videos/m4_video_1.mp4"]


def test_retry_reassigns_and_reloads():
    session, media, _, _ = build()
    asyncio.run(session.start())
    session.controller.report_error("Failed to load video")

    session.controller.retry()
    assert session.state.error is None
    assert media.sources == [MP4.video_url, MP4.video_url]
    assert media.loads == 1


def test_change_content_tears_down_previous_source():
    async def never_loads(name):
        await asyncio.Event().wait()

    session, media, scheduler, _ = build(HLS, loader=never_loads)

    async def run():
        await session.start()
        first = session.attachment
        session.controller.handle_media_event("loadstart")
        await session.change_content(MP4)
        return first

    first = asyncio.run(run())
    assert first.cancelled
    assert media.sources == [MP4.video_url]
    assert session.content is MP4

    scheduler.advance(30)
    assert session.state.error is None


def test_stream_failure_reaches_controller():
    engines = []

    class Engine:
        def __init__(self, enable_worker=True):
            self.handlers = {}
            engines.append(self)

        @classmethod
        def is_supported(cls):
            return True

        def on(self, event, cb):
            self.handlers[event] = cb

        def attach_media(self, media):
            pass

        def destroy(self):
            pass

    async def loader(name):
        return SimpleNamespace(Engine=Engine, Events=SimpleNamespace(MEDIA_ATTACHED="a", ERROR="e"))

    session, _, _, _ = build(HLS, loader=loader)

    async def run():
        await session.start()
        await session.attachment.wait()

    asyncio.run(run())
    engines[0].handlers["e"]("e", {"fatal": True})
    assert session.state.error == "Failed to load stream"


def test_overlays_follow_plan_and_state():
    """Embeds never show custom chrome; direct files show the play button until playing"""
    session, _, _, _ = build(EMBED)
    assert session.overlays["controls"] is False
    asyncio.run(session.start())
    assert session.overlays == {"controls": False, "spinner": False, "play_button": False, "error": False}

    session, _, _, _ = build()
    asyncio.run(session.start())
    assert session.overlays["play_button"]
    session.controller.toggle_play()
    assert not session.overlays["play_button"]
    session.controller.report_error("Failed to load video")
    assert session.overlays["error"]
