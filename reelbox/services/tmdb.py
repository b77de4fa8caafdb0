"""
TMDB metadata client used by the admin import dialog and the /api/tmdb routes.
Results are trimmed to the fields the UI reads.
"""
from __future__ import annotations
import logging

import requests

from reelbox.core.config import settings
from reelbox.core.errors import TMDBError

log = logging.getLogger("reelbox.tmdb")

IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
IMAGE_SIZES = ("w200", "w500", "w780", "w1280", "original")


def format_summary(item: dict, media_type: str | None = None) -> dict:
    return {
        'id': item.get('id'),
        'title': item.get('title') or item.get('name'),
        'overview': item.get('overview'),
        'release_date': item.get('release_date') or item.get('first_air_date'),
        'vote_average': item.get('vote_average'),
        'poster_path': item.get('poster_path'),
        'backdrop_path': item.get('backdrop_path'),
        'media_type': media_type or item.get('media_type'),
        'genre_ids': item.get('genre_ids'),
    }


def format_details(data: dict, media_type: str) -> dict:
    credits = data.get('credits') or {}
    runtimes = data.get('episode_run_time') or []
    return {
        'id': data.get('id'),
        'title': data.get('title') or data.get('name'),
        'overview': data.get('overview'),
        'release_date': data.get('release_date') or data.get('first_air_date'),
        'vote_average': data.get('vote_average'),
        'poster_path': data.get('poster_path'),
        'backdrop_path': data.get('backdrop_path'),
        'runtime': data.get('runtime') or (runtimes[0] if runtimes else None),
        'genres': data.get('genres'),
        'media_type': media_type,
        'cast': [
            {
                'id': p.get('id'),
                'name': p.get('name'),
                'character': p.get('character'),
                'profile_path': p.get('profile_path'),
            }
            for p in (credits.get('cast') or [])[:10]
        ],
        'crew': [p for p in (credits.get('crew') or []) if p.get('job') == 'Director'][:3],
        'videos': [
            v for v in ((data.get('videos') or {}).get('results') or [])
            if v.get('type') == 'Trailer' and v.get('site') == 'YouTube'
        ],
    }


class TMDBClient:
    def __init__(self, api_key: str | None = None, base_url: str | None = None,
                 session: requests.Session | None = None, timeout: int = 10):
        self.api_key = api_key if api_key is not None else settings.tmdb_api_key
        self.base_url = (base_url or settings.tmdb_base_url).rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get(self, path: str, **params) -> dict:
        if not self.api_key:
            raise TMDBError("TMDB API key not configured")
        params['api_key'] = self.api_key
        try:
            response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        except requests.RequestException as e:
            log.error(f"TMDB request {path} failed: {e}")
            raise TMDBError(f"TMDB request failed: {e}") from e
        if response.status_code != 200:
            log.error(f"TMDB API error {response.status_code} for {path}")
            raise TMDBError(f"TMDB API error: {response.status_code}")
        return response.json()

    def search_multi(self, query: str, page: int = 1) -> dict:
        data = self._get("/search/multi", query=query, page=page)
        results = [
            format_summary(item) for item in data.get('results', [])
            if item.get('media_type') in ('movie', 'tv')
        ]
        return {
            'results': results,
            'total_results': data.get('total_results'),
            'total_pages': data.get('total_pages'),
        }

    def get_details(self, tmdb_id: int, media_type: str) -> dict:
        if media_type not in ('movie', 'tv'):
            raise ValueError(f"media_type must be 'movie' or 'tv', got {media_type!r}")
        data = self._get(f"/{media_type}/{tmdb_id}", append_to_response="credits,videos")
        return format_details(data, media_type)

    def get_trending(self, time_window: str = "week", media_type: str = "all") -> dict:
        data = self._get(f"/trending/{media_type}/{time_window}")
        return {
            'results': [format_summary(item) for item in data.get('results', [])],
            'total_results': data.get('total_results'),
            'total_pages': data.get('total_pages'),
        }

    @staticmethod
    def image_url(path: str | None, size: str = "w500") -> str | None:
        if not path:
            return None
        if size not in IMAGE_SIZES:
            raise ValueError(f"Unknown image size: {size}")
        return f"{IMAGE_BASE_URL}/{size}{path}"

    @staticmethod
    def youtube_url(key: str) -> str:
        return f"https://www.youtube.com/watch?v={key}"
