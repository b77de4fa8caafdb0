import pytest
import requests

from reelbox.core.errors import TMDBError
from reelbox.services.tmdb import TMDBClient


class FakeResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self._data = data or {}

    def json(self):
        return self._data


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        if self.error:
            raise self.error
        return self.response


def make_client(data=None, status_code=200, error=None, api_key="k"):
    session = FakeSession(FakeResponse(status_code, data), error)
    return TMDBClient(api_key=api_key, base_url="https://api.tmdb.test/3", session=session), session


def test_search_keeps_movies_and_shows():
    client, session = make_client({
        "results": [
            {"id": 1, "title": "Heat", "media_type": "movie"},
            {"id": 2, "name": "Fargo", "first_air_date": "2014-04-15", "media_type": "tv"},
            {"id": 3, "name": "Al Pacino", "media_type": "person"},
        ],
        "total_results": 3,
        "total_pages": 1,
    })
    data = client.search_multi("heat")

    assert [r["title"] for r in data["results"]] == ["Heat", "Fargo"]
    assert data["results"][1]["release_date"] == "2014-04-15"
    url, params = session.requests[0]
    assert url == "https://api.tmdb.test/3/search/multi"
    assert params == {"query": "heat", "page": 1, "api_key": "k"}


def test_details_trims_credits_and_videos():
    client, session = make_client({
        "id": 949,
        "title": "Heat",
        "runtime": 170,
        "credits": {
            "cast": [{"id": i, "name": f"Actor {i}"} for i in range(15)],
            "crew": [
                {"name": "Michael Mann", "job": "Director"},
                {"name": "Someone", "job": "Editor"},
            ],
        },
        "videos": {"results": [
            {"key": "abc", "type": "Trailer", "site": "YouTube"},
            {"key": "def", "type": "Featurette", "site": "YouTube"},
            {"key": "ghi", "type": "Trailer", "site": "Vimeo"},
        ]},
    })
    data = client.get_details(949, "movie")

    assert len(data["cast"]) == 10
    assert [p["name"] for p in data["crew"]] == ["Michael Mann"]
    assert [v["key"] for v in data["videos"]] == ["abc"]
    assert session.requests[0][1]["append_to_response"] == "credits,videos"


def test_tv_runtime_comes_from_episode_runtime():
    client, _ = make_client({"id": 1, "name": "Fargo", "episode_run_time": [53]})
    assert client.get_details(1, "tv")["runtime"] == 53


def test_details_rejects_unknown_type():
    client, _ = make_client()
    with pytest.raises(ValueError):
        client.get_details(1, "person")


def test_http_error_raises():
    client, _ = make_client(status_code=401)
    with pytest.raises(TMDBError):
        client.get_trending()


def test_network_error_raises():
    client, _ = make_client(error=requests.ConnectionError("down"))
    with pytest.raises(TMDBError):
        client.search_multi("heat")


def test_missing_key():
    client, session = make_client(api_key="")
    assert not client.configured
    with pytest.raises(TMDBError):
        client.get_trending()
    assert session.requests == []


def test_image_and_trailer_urls():
    assert TMDBClient.image_url("/p.jpg") == "https://image.tmdb.org/t/p/w500/p.jpg"
    assert TMDBClient.image_url("/p.jpg", "original") == "https://image.tmdb.org/t/p/original/p.jpg"
    assert TMDBClient.image_url(None) is None
    with pytest.raises(ValueError):
        TMDBClient.image_url("/p.jpg", "w9000")
    assert TMDBClient.youtube_url("abc") == "https://www.youtube.com/watch?v=abc"
