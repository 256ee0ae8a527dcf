"""Movie API routes.

Every route is gated: reads need movies:read, writes need movies:write.
The service layer owns persistence and the conditional update; routes
merge partial input, validate, and translate to the JSON envelope.

PATCH honours an optional X-Expected-Version header. A mismatch with the
version we just read is rejected with 409 before any write is attempted.
The conditional UPDATE still decides the race if the row changes between
that read and the write.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from greenlight.api.helpers import read_csv, read_int, read_string
from greenlight.auth.dependencies import require_permission
from greenlight.db.engine import get_db
from greenlight.errors import EditConflictError
from greenlight.schemas.movie import MovieCreate, MovieRead, MovieUpdate
from greenlight.services.movie_service import (
    Filters,
    MovieService,
    validate_filters,
    validate_movie,
)
from greenlight.services.permission_service import MOVIES_READ, MOVIES_WRITE
from greenlight.validator import Validator

router = APIRouter(prefix="/movies")

_can_read = [Depends(require_permission(MOVIES_READ))]
_can_write = [Depends(require_permission(MOVIES_WRITE))]


def _movie_svc(db: AsyncSession = Depends(get_db)) -> MovieService:
    return MovieService(db)


def _current_year() -> int:
    return datetime.now(timezone.utc).year


@router.get("", dependencies=_can_read)
async def list_movies(request: Request, svc: MovieService = Depends(_movie_svc)):
    """List movies. Query: title, genres (CSV), page, page_size, sort."""
    qs = request.query_params
    v = Validator()

    title = read_string(qs, "title", "")
    genres = read_csv(qs, "genres", [])
    filters = Filters(
        page=read_int(qs, "page", 1, v),
        page_size=read_int(qs, "page_size", 20, v),
        sort=read_string(qs, "sort", "id"),
    )
    validate_filters(v, filters)
    v.raise_if_invalid()

    movies, metadata = await svc.get_all(title=title, genres=genres, filters=filters)
    return {
        "metadata": metadata,
        "movies": [MovieRead.model_validate(m) for m in movies],
    }


@router.post("", status_code=201, dependencies=_can_write)
async def create_movie(
    body: MovieCreate,
    response: Response,
    svc: MovieService = Depends(_movie_svc),
):
    v = Validator()
    validate_movie(v, body.title, body.year, body.runtime, body.genres, _current_year())
    v.raise_if_invalid()

    movie = await svc.insert(
        title=body.title,
        year=body.year,
        runtime=body.runtime,
        genres=body.genres,
    )
    response.headers["Location"] = f"/v1/movies/{movie.id}"
    return {"movie": MovieRead.model_validate(movie)}


@router.get("/{movie_id}", dependencies=_can_read)
async def show_movie(movie_id: int, svc: MovieService = Depends(_movie_svc)):
    movie = await svc.get(movie_id)
    return {"movie": MovieRead.model_validate(movie)}


@router.patch("/{movie_id}", dependencies=_can_write)
async def update_movie(
    movie_id: int,
    body: MovieUpdate,
    x_expected_version: Optional[str] = Header(None),
    svc: MovieService = Depends(_movie_svc),
):
    """Partially update a movie under optimistic concurrency."""
    movie = await svc.get(movie_id)

    if x_expected_version and x_expected_version != str(movie.version):
        raise EditConflictError()

    # Merge into a plain dict; the loaded ORM instance is never mutated, so
    # nothing but the conditional UPDATE below can write the row.
    merged = {
        "title": movie.title,
        "year": movie.year,
        "runtime": movie.runtime,
        "genres": list(movie.genres),
    }
    for key in body.model_fields_set:
        value = getattr(body, key)
        if value is not None:
            merged[key] = value

    v = Validator()
    validate_movie(v, merged["title"], merged["year"], merged["runtime"], merged["genres"], _current_year())
    v.raise_if_invalid()

    new_version = await svc.update(movie.id, movie.version, **merged)
    return {
        "movie": MovieRead(id=movie.id, version=new_version, **merged),
    }


@router.delete("/{movie_id}", dependencies=_can_write)
async def delete_movie(movie_id: int, svc: MovieService = Depends(_movie_svc)):
    await svc.delete(movie_id)
    return {"message": "movie successfully deleted"}
