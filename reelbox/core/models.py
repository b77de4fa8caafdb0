import uuid
from sqlalchemy import Column, Integer, String, Float, ForeignKey, Text, DateTime, Table
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _new_id():
    return str(uuid.uuid4())


movie_categories = Table(
    'movie_categories',
    Base.metadata,
    Column('movie_id', String, ForeignKey('movies.id', ondelete='CASCADE'), primary_key=True),
    Column('category_id', String, ForeignKey('categories.id', ondelete='CASCADE'), primary_key=True),
)


# --- CONTENT TABLES ---
class Movie(Base):
    __tablename__ = 'movies'

    id = Column(String, primary_key=True, default=_new_id)
    title = Column(String, nullable=False)
    description = Column(Text)
    release_year = Column(Integer)
    duration_minutes = Column(Integer)
    genre = Column(String)
    rating = Column(Float)
    poster_url = Column(String)
    backdrop_url = Column(String)
    tmdb_id = Column(Integer, index=True)
    type = Column(String, default='movie')   # 'movie' | 'tv'

    # Media locators: an external URL or an uploaded storage object
    video_url = Column(String)
    trailer_url = Column(String)
    video_file_path = Column(String)
    trailer_file_path = Column(String)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    categories = relationship("Category", secondary=movie_categories, back_populates="movies")


class Category(Base):
    __tablename__ = 'categories'

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True)
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    movies = relationship("Movie", secondary=movie_categories, back_populates="categories")
