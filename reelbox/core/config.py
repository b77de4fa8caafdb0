"""
Runtime settings for Reelbox.

Values come from the environment (a local .env is honoured) with defaults
that match the player's stock timings.
"""
from __future__ import annotations
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return int(raw)


@dataclass
class Settings:
    database_url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///./reelbox.db"))

    # Metadata service
    tmdb_api_key: str | None = field(default_factory=lambda: os.getenv("TMDB_API_KEY"))
    tmdb_base_url: str = field(default_factory=lambda: os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3"))

    # Object storage
    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", "http://localhost:54321"))
    supabase_key: str = field(default_factory=lambda: os.getenv("SUPABASE_KEY", ""))
    storage_bucket: str = field(default_factory=lambda: os.getenv("STORAGE_BUCKET", "movie-videos"))
    signed_url_expiry: int = field(default_factory=lambda: _env_int("SIGNED_URL_EXPIRY", 60))

    # Player timing (seconds)
    load_timeout_seconds: float = field(default_factory=lambda: _env_float("LOAD_TIMEOUT_SECONDS", 15.0))
    controls_hide_seconds: float = field(default_factory=lambda: _env_float("CONTROLS_HIDE_SECONDS", 3.0))
    progress_save_seconds: float = field(default_factory=lambda: _env_float("PROGRESS_SAVE_SECONDS", 10.0))

    proxy_timeout: float = field(default_factory=lambda: _env_float("PROXY_TIMEOUT", 30.0))
    hls_engine_module: str = field(default_factory=lambda: os.getenv("HLS_ENGINE_MODULE", "reelbox.playback.hls_engine"))
    progress_store_path: str = field(default_factory=lambda: os.getenv("PROGRESS_STORE_PATH", "reelbox_progress.json"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


settings = Settings()
