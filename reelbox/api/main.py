import logging
import time
from contextlib import asynccontextmanager
from typing import List, Optional

import httpx
from fastapi import FastAPI, Depends, Request, UploadFile, File, Form, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask

from reelbox.core import models
from reelbox.core.config import settings
from reelbox.core.database import get_db, init_db
from reelbox.core.errors import ProxyValidationError, StorageError, TMDBError, UpstreamError
from reelbox.api.proxy import get_upstream_client, open_upstream, passthrough_headers, validate_target
from reelbox.playback.base import PlayableContent, PlaybackState
from reelbox.playback.progress import JsonFileStore, ResumeStore, Watchlist
from reelbox.playback.render import plan_render, visible_overlays
from reelbox.playback.resolver import SourceResolver
from reelbox.services.storage import SupabaseStorage
from reelbox.services.tmdb import TMDBClient

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
log = logging.getLogger("reelbox.api")

ALLOWED_VIDEO_TYPES = ["video/mp4", "video/webm", "video/ogg", "video/avi", "video/mov", "video/wmv"]
MAX_UPLOAD_BYTES = 5 * 1024 * 1024 * 1024  # 5GB


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield
    await _storage.close()


app = FastAPI(title="Reelbox | Player API", lifespan=lifespan)

_storage = SupabaseStorage()
_tmdb = TMDBClient()


# --- DEPENDENCIES ---

def get_storage():
    return _storage


def get_tmdb():
    return _tmdb


def get_kv_store():
    return JsonFileStore(settings.progress_store_path)


def get_resume_store(store=Depends(get_kv_store)):
    return ResumeStore(store)


def get_watchlist(store=Depends(get_kv_store)):
    return Watchlist(store)


def get_movie_or_404(db: Session, movie_id: str) -> models.Movie:
    movie = db.query(models.Movie).filter(models.Movie.id == movie_id).first()
    if not movie:
        raise HTTPException(status_code=404, detail="Movie not found")
    return movie


def movie_to_dict(movie: models.Movie) -> dict:
    return {
        'id': movie.id,
        'title': movie.title,
        'description': movie.description,
        'release_year': movie.release_year,
        'duration_minutes': movie.duration_minutes,
        'genre': movie.genre,
        'rating': movie.rating,
        'poster_url': movie.poster_url,
        'backdrop_url': movie.backdrop_url,
        'video_url': movie.video_url,
        'trailer_url': movie.trailer_url,
        'video_file_path': movie.video_file_path,
        'trailer_file_path': movie.trailer_file_path,
        'tmdb_id': movie.tmdb_id,
        'type': movie.type,
        'created_at': movie.created_at.isoformat() if movie.created_at else None,
        'updated_at': movie.updated_at.isoformat() if movie.updated_at else None,
        'categories': [{'id': c.id, 'name': c.name, 'slug': c.slug} for c in movie.categories],
    }


# --- 1. STREAMING PROXY ---

@app.get("/proxy-video")
async def proxy_video(request: Request, url: Optional[str] = None,
                      client: httpx.AsyncClient = Depends(get_upstream_client)):
    """Streams an allow-listed host's bytes through, keeping Range semantics."""
    try:
        target = validate_target(url)
        upstream = await open_upstream(client, target, request.headers.get("range"))
    except ProxyValidationError as e:
        await client.aclose()
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    except UpstreamError:
        await client.aclose()
        return JSONResponse({"error": "Upstream fetch failed"}, status_code=UpstreamError.status_code)

    async def _close():
        await upstream.aclose()
        await client.aclose()

    return StreamingResponse(
        upstream.aiter_raw(),
        status_code=upstream.status_code,
        headers=passthrough_headers(upstream.headers),
        background=BackgroundTask(_close),
    )


# --- 2. PLAYBACK ---

@app.get("/watch/{movie_id}")
async def watch(movie_id: str, t: int = 0, db: Session = Depends(get_db),
                storage=Depends(get_storage), resume: ResumeStore = Depends(get_resume_store)):
    """Everything the watch page needs: the resolved source, how to render it and where to start."""
    movie = get_movie_or_404(db, movie_id)
    content = PlayableContent.from_movie(movie)
    source = await SourceResolver(storage).resolve(content)
    plan = plan_render(source, content.backdrop_url)
    return {
        "movie": movie_to_dict(movie),
        "source": source.to_dict(),
        "render": plan.to_dict(),
        "overlays": visible_overlays(plan, PlaybackState(error=source.error)),
        "start_time": t,
        "resume_at": resume.resume_position(movie.id, t),
    }


class ProgressInput(BaseModel):
    current_time: float
    duration: float


@app.get("/progress")
def list_progress(limit: Optional[int] = None, resume: ResumeStore = Depends(get_resume_store)):
    return [e.to_dict() for e in resume.entries(limit)]


@app.post("/progress/{movie_id}")
def save_progress(movie_id: str, body: ProgressInput, db: Session = Depends(get_db),
                  resume: ResumeStore = Depends(get_resume_store)):
    movie = get_movie_or_404(db, movie_id)
    snapshot = PlayableContent.from_movie(movie).to_dict()
    saved = resume.save_progress(movie.id, body.current_time, body.duration, snapshot)
    return {"saved": saved}


@app.delete("/progress/{movie_id}")
def remove_progress(movie_id: str, resume: ResumeStore = Depends(get_resume_store)):
    resume.remove(movie_id)
    return {"removed": movie_id}


@app.get("/watchlist")
def get_watchlist_items(watchlist: Watchlist = Depends(get_watchlist)):
    return watchlist.items()


@app.post("/watchlist/{movie_id}")
def add_to_watchlist(movie_id: str, db: Session = Depends(get_db),
                     watchlist: Watchlist = Depends(get_watchlist)):
    movie = get_movie_or_404(db, movie_id)
    added = watchlist.add(movie_to_dict(movie))
    return {"status": "added" if added else "exists"}


@app.delete("/watchlist/{movie_id}")
def remove_from_watchlist(movie_id: str, watchlist: Watchlist = Depends(get_watchlist)):
    watchlist.remove(movie_id)
    return {"status": "removed"}


@app.delete("/watchlist")
def clear_watchlist(watchlist: Watchlist = Depends(get_watchlist)):
    watchlist.clear()
    return {"status": "cleared"}


# --- 3. CATALOG ---

class MovieIn(BaseModel):
    title: str
    description: Optional[str] = None
    release_year: Optional[int] = None
    duration_minutes: Optional[int] = None
    genre: Optional[str] = None
    rating: Optional[float] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    video_url: Optional[str] = None
    trailer_url: Optional[str] = None
    tmdb_id: Optional[int] = None
    type: str = "movie"
    category_ids: List[str] = []


class MovieUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    release_year: Optional[int] = None
    duration_minutes: Optional[int] = None
    genre: Optional[str] = None
    rating: Optional[float] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    video_url: Optional[str] = None
    trailer_url: Optional[str] = None
    tmdb_id: Optional[int] = None
    type: Optional[str] = None
    category_ids: Optional[List[str]] = None


def _set_categories(db: Session, movie: models.Movie, category_ids: List[str]):
    movie.categories = db.query(models.Category).filter(models.Category.id.in_(category_ids)).all()


# Sort keys offered by the search page; "newest" is the home page's order
MOVIE_SORTS = {
    "newest": models.Movie.created_at.desc(),
    "title": models.Movie.title.asc(),
    "rating": models.Movie.rating.desc(),
    "year": models.Movie.release_year.desc(),
}
RELATED_LIMIT = 10


@app.get("/movies")
def get_movies(skip: int = 0, limit: int = 50, type: Optional[str] = None, q: Optional[str] = None,
               genre: Optional[str] = None, sort: str = "newest", db: Session = Depends(get_db)):
    """Browse and search: free text over title/description, genre and type filters, one sort key."""
    if sort not in MOVIE_SORTS:
        return JSONResponse({"error": f"Unknown sort: {sort}"}, status_code=400)
    query = db.query(models.Movie)
    if q:
        query = query.filter(or_(models.Movie.title.ilike(f"%{q}%"), models.Movie.description.ilike(f"%{q}%")))
    if genre:
        query = query.filter(models.Movie.genre == genre)
    if type:
        query = query.filter(models.Movie.type == type)
    movies = query.order_by(MOVIE_SORTS[sort]).offset(skip).limit(limit).all()
    return [movie_to_dict(m) for m in movies]


@app.get("/movies/{movie_id}/related")
def get_related_movies(movie_id: str, limit: int = RELATED_LIMIT, db: Session = Depends(get_db)):
    movie = get_movie_or_404(db, movie_id)
    if not movie.genre:
        return []
    related = (db.query(models.Movie)
               .filter(models.Movie.genre == movie.genre, models.Movie.id != movie.id)
               .limit(limit).all())
    return [movie_to_dict(m) for m in related]


@app.get("/categories")
def get_categories(db: Session = Depends(get_db)):
    categories = db.query(models.Category).order_by(models.Category.name).all()
    return [{'id': c.id, 'name': c.name, 'slug': c.slug, 'description': c.description} for c in categories]


@app.get("/categories/{slug}/movies")
def get_category_movies(slug: str, limit: int = 10, db: Session = Depends(get_db)):
    # Unknown slugs give an empty row, like an empty category
    movies = (db.query(models.Movie)
              .join(models.Movie.categories)
              .filter(models.Category.slug == slug)
              .order_by(models.Movie.created_at.desc())
              .limit(limit).all())
    return [movie_to_dict(m) for m in movies]


@app.get("/movies/{movie_id}")
def get_movie(movie_id: str, db: Session = Depends(get_db)):
    return movie_to_dict(get_movie_or_404(db, movie_id))


@app.post("/movies", status_code=201)
def create_movie(body: MovieIn, db: Session = Depends(get_db)):
    data = body.model_dump(exclude={"category_ids"})
    movie = models.Movie(**data)
    _set_categories(db, movie, body.category_ids)
    db.add(movie)
    db.commit()
    db.refresh(movie)
    log.info(f"Created movie {movie.id} ({movie.title})")
    return movie_to_dict(movie)


@app.put("/movies/{movie_id}")
def update_movie(movie_id: str, body: MovieUpdate, db: Session = Depends(get_db)):
    movie = get_movie_or_404(db, movie_id)
    changes = body.model_dump(exclude_unset=True)
    category_ids = changes.pop("category_ids", None)
    for field, value in changes.items():
        setattr(movie, field, value)
    if category_ids is not None:
        _set_categories(db, movie, category_ids)
    db.commit()
    db.refresh(movie)
    return movie_to_dict(movie)


@app.delete("/movies/{movie_id}")
async def delete_movie(movie_id: str, db: Session = Depends(get_db), storage=Depends(get_storage)):
    movie = get_movie_or_404(db, movie_id)
    for path in (movie.video_file_path, movie.trailer_file_path):
        if path and not await storage.remove(path):
            log.warning(f"Could not remove stored file {path} for movie {movie_id}")
    db.delete(movie)
    db.commit()
    return {"status": "deleted", "id": movie_id}


# --- 4. UPLOADS ---

@app.post("/api/upload-video")
async def upload_video(video: Optional[UploadFile] = File(None), movieId: str = Form(...),
                       type: str = Form("video"), db: Session = Depends(get_db),
                       storage=Depends(get_storage)):
    if video is None:
        return JSONResponse({"error": "No file provided"}, status_code=400)
    if type not in ("video", "trailer"):
        return JSONResponse({"error": "Invalid upload type"}, status_code=400)
    if video.content_type not in ALLOWED_VIDEO_TYPES:
        return JSONResponse({"error": "Invalid file type"}, status_code=400)
    if video.size is not None and video.size > MAX_UPLOAD_BYTES:
        return JSONResponse({"error": "File too large (max 5GB)"}, status_code=400)

    movie = db.query(models.Movie).filter(models.Movie.id == movieId).first()
    if movie is None:
        return JSONResponse({"error": "Movie not found"}, status_code=404)
    extension = (video.filename or "").rsplit(".", 1)[-1] or "mp4"
    file_path = f"{type}s/{movieId}_{type}_{int(time.time() * 1000)}.{extension}"

    data = await video.read()
    if len(data) > MAX_UPLOAD_BYTES:
        return JSONResponse({"error": "File too large (max 5GB)"}, status_code=400)
    try:
        public_url = await storage.upload(file_path, data, video.content_type)
    except StorageError as e:
        log.error(f"Upload error: {e}")
        return JSONResponse({"error": "Failed to upload file"}, status_code=500)

    try:
        setattr(movie, "video_file_path" if type == "video" else "trailer_file_path", file_path)
        db.commit()
    except Exception as e:
        log.error(f"Database update error: {e}")
        db.rollback()
        await storage.remove(file_path)
        return JSONResponse({"error": "Failed to update movie record"}, status_code=500)

    return {
        "success": True,
        "filePath": file_path,
        "publicUrl": public_url,
        "message": f"{type} uploaded successfully",
    }


# --- 5. METADATA (TMDB) ---

@app.get("/api/tmdb/search")
def tmdb_search(query: Optional[str] = None, tmdb: TMDBClient = Depends(get_tmdb)):
    if not query:
        return JSONResponse({"error": "Query parameter is required"}, status_code=400)
    if not tmdb.configured:
        return JSONResponse({"error": "TMDB API key not configured"}, status_code=500)
    try:
        return tmdb.search_multi(query)
    except TMDBError as e:
        log.error(f"TMDB search error: {e}")
        return JSONResponse({"error": "Failed to search TMDB"}, status_code=500)


@app.get("/api/tmdb/details")
def tmdb_details(id: Optional[int] = None, type: Optional[str] = None, tmdb: TMDBClient = Depends(get_tmdb)):
    if not id or type not in ("movie", "tv"):
        return JSONResponse({"error": "ID and type parameters are required"}, status_code=400)
    if not tmdb.configured:
        return JSONResponse({"error": "TMDB API key not configured"}, status_code=500)
    try:
        return tmdb.get_details(id, type)
    except TMDBError as e:
        log.error(f"TMDB details error: {e}")
        return JSONResponse({"error": "Failed to fetch TMDB details"}, status_code=500)


@app.get("/api/tmdb/trending")
def tmdb_trending(time_window: str = "week", media_type: str = "all", tmdb: TMDBClient = Depends(get_tmdb)):
    if not tmdb.configured:
        return JSONResponse({"error": "TMDB API key not configured"}, status_code=500)
    try:
        return tmdb.get_trending(time_window, media_type)
    except TMDBError as e:
        log.error(f"TMDB trending error: {e}")
        return JSONResponse({"error": "Failed to fetch trending content"}, status_code=500)
