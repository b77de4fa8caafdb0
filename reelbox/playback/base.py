"""
Core types for the Reelbox playback system.

Two stream strategies:
  - hls:  m3u8 manifest URL → native HLS or the adaptive engine
  - file: anything else → assigned to the media element as-is
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

# Public sample used when a title has no media attached
FALLBACK_VIDEO_URL = "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/BigBuckBunny.mp4"

STRATEGY_HLS = "hls"
STRATEGY_FILE = "file"


# ──────────────────────────────
#  Playable content
# ──────────────────────────────
@dataclass(frozen=True)
class PlayableContent:
    id: str
    title: str
    backdrop_url: Optional[str] = None
    poster_url: Optional[str] = None
    video_url: Optional[str] = None         # direct external URL
    video_file_path: Optional[str] = None   # uploaded storage object
    trailer_url: Optional[str] = None

    @classmethod
    def from_movie(cls, movie) -> "PlayableContent":
        return cls(
            id=str(movie.id),
            title=movie.title,
            backdrop_url=movie.backdrop_url,
            poster_url=movie.poster_url,
            video_url=movie.video_url,
            video_file_path=movie.video_file_path,
            trailer_url=movie.trailer_url,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "backdrop_url": self.backdrop_url,
            "poster_url": self.poster_url,
            "video_url": self.video_url,
            "video_file_path": self.video_file_path,
            "trailer_url": self.trailer_url,
        }


# ──────────────────────────────
#  Source classification
# ──────────────────────────────
class SourceKind(str, Enum):
    STORED_FILE = "stored_file"
    DIRECT_URL = "direct_url"
    PROXIED_URL = "proxied_url"
    EMBED_IFRAME = "embed_iframe"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class SourceClassification:
    kind: SourceKind
    value: Optional[str] = None       # storage path or original URL; None for fallback

    @classmethod
    def stored_file(cls, path: str):
        return cls(SourceKind.STORED_FILE, path)

    @classmethod
    def direct_url(cls, url: str):
        return cls(SourceKind.DIRECT_URL, url)

    @classmethod
    def proxied_url(cls, original_url: str):
        return cls(SourceKind.PROXIED_URL, original_url)

    @classmethod
    def embed_iframe(cls, url: str):
        return cls(SourceKind.EMBED_IFRAME, url)

    @classmethod
    def fallback(cls):
        return cls(SourceKind.FALLBACK)

    def to_dict(self):
        return {"kind": self.kind.value, "value": self.value}


@dataclass
class ResolvedSource:
    classification: SourceClassification
    play_url: Optional[str]
    download_url: Optional[str] = None
    strategy: str = STRATEGY_FILE     # "hls" | "file"
    error: Optional[str] = None

    @property
    def is_embed(self) -> bool:
        return self.classification.kind is SourceKind.EMBED_IFRAME

    @property
    def is_proxied(self) -> bool:
        return self.classification.kind is SourceKind.PROXIED_URL

    def to_dict(self):
        return {
            "classification": self.classification.to_dict(),
            "play_url": self.play_url,
            "download_url": self.download_url,
            "strategy": self.strategy,
            "error": self.error,
        }


# ──────────────────────────────
#  Resume entry (continue-watching row)
# ──────────────────────────────
@dataclass
class ResumeEntry:
    movie_id: str
    current_time: float
    duration: float
    last_watched: str                 # ISO-8601
    movie: Optional[dict] = None      # content snapshot for the row UI

    def to_dict(self):
        d = {
            "movieId": self.movie_id,
            "currentTime": self.current_time,
            "duration": self.duration,
            "lastWatched": self.last_watched,
        }
        if self.movie is not None:
            d["movie"] = self.movie
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "ResumeEntry":
        return cls(
            movie_id=str(data["movieId"]),
            current_time=float(data.get("currentTime") or 0),
            duration=float(data.get("duration") or 0),
            last_watched=data.get("lastWatched", ""),
            movie=data.get("movie"),
        )

    @property
    def progress_percent(self) -> float:
        if self.duration <= 0:
            return 0.0
        return self.current_time / self.duration * 100


# ──────────────────────────────
#  Player state
# ──────────────────────────────
@dataclass(frozen=True)
class PlaybackState:
    is_playing: bool = False
    is_muted: bool = False
    volume: int = 100                 # 0-100
    current_time: float = 0.0
    duration: float = 0.0
    buffered_end: float = 0.0
    is_fullscreen: bool = False
    selected_quality: str = "auto"
    playback_speed: float = 1.0
    is_loading: bool = False
    error: Optional[str] = None
    show_controls: bool = True

    @property
    def buffered_percent(self) -> float:
        return self.buffered_end / self.duration * 100 if self.duration > 0 else 0.0

    @property
    def progress_percent(self) -> float:
        return self.current_time / self.duration * 100 if self.duration > 0 else 0.0


@dataclass(frozen=True)
class MediaEvent:
    """A media element notification, a user intent or a timer firing."""
    type: str
    value: Any = None
