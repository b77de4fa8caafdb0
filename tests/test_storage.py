import asyncio
import json

import httpx
import pytest

from reelbox.core.errors import StorageError
from reelbox.services.storage import SupabaseStorage

BASE = "https://proj.supabase.co"


def make_storage(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseStorage(base_url=BASE, key="service-key", bucket="movie-videos", client=client)


def test_public_url_needs_no_request():
    def handler(request):
        raise AssertionError("no request expected")

    storage = make_storage(handler)
    url = asyncio.run(storage.get_public_url("videos/m1 video.mp4"))
    assert url == f"{BASE}/storage/v1/object/public/movie-videos/videos/m1%20video.mp4"


def test_signed_url():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"signedURL": "/object/sign/movie-videos/videos/a.mp4?token=t"})

    url = asyncio.run(make_storage(handler).get_signed_url("videos/a.mp4", 60))
    assert seen["url"] == f"{BASE}/storage/v1/object/sign/movie-videos/videos/a.mp4"
    assert seen["body"] == {"expiresIn": 60}
    assert url == f"{BASE}/storage/v1/object/sign/movie-videos/videos/a.mp4?token=t"


def test_signed_url_failure_returns_none():
    storage = make_storage(lambda request: httpx.Response(400, json={"error": "not found"}))
    assert asyncio.run(storage.get_signed_url("videos/a.mp4", 60)) is None


def test_upload_does_not_overwrite():
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        seen["body"] = request.content
        return httpx.Response(200, json={"Key": "movie-videos/videos/a.mp4"})

    url = asyncio.run(make_storage(handler).upload("videos/a.mp4", b"data", "video/mp4"))
    assert seen["headers"]["x-upsert"] == "false"
    assert seen["headers"]["content-type"] == "video/mp4"
    assert seen["body"] == b"data"
    assert url.endswith("/object/public/movie-videos/videos/a.mp4")


def test_upload_error_raises():
    storage = make_storage(lambda request: httpx.Response(409, text="Duplicate"))
    with pytest.raises(StorageError):
        asyncio.run(storage.upload("videos/a.mp4", b"data", "video/mp4"))


def test_remove():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[])

    assert asyncio.run(make_storage(handler).remove("videos/a.mp4"))
    assert seen == {"method": "DELETE", "body": {"prefixes": ["videos/a.mp4"]}}


def test_remove_network_failure():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    assert asyncio.run(make_storage(handler).remove("videos/a.mp4")) is False
