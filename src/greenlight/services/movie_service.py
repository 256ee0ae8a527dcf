"""Movie service — catalog CRUD with optimistic concurrency.

Learn the update protocol once, here:

    UPDATE movies
       SET title = ..., version = version + 1
     WHERE id = :id AND version = :expected
 RETURNING version

The caller passes the version it read. If anybody else updated (or deleted)
the row in between, the WHERE clause matches nothing, no version comes back,
and the caller gets EditConflictError. No lock is held between the read and
the write; two writers racing from the same version cannot both win.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from greenlight.db.engine import bounded
from greenlight.db.models import Movie
from greenlight.errors import EditConflictError, InternalInvariantViolation, NotFoundError
from greenlight.validator import Validator, permitted_value, unique

SORT_SAFELIST = (
    "id", "title", "year", "runtime",
    "-id", "-title", "-year", "-runtime",
)

_UPDATABLE = {"title", "year", "runtime", "genres"}


# ═══════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════


def validate_movie(
    v: Validator,
    title: Optional[str],
    year: Optional[int],
    runtime: Optional[int],
    genres: Optional[list[str]],
    current_year: int,
) -> None:
    v.check(bool(title), "title", "must be provided")
    v.check(len((title or "").encode("utf-8")) <= 500, "title", "must not be more than 500 bytes long")

    v.check(year is not None and year != 0, "year", "must be provided")
    v.check(year is None or year >= 1888, "year", "must be greater than 1888")
    v.check(year is None or year <= current_year, "year", "must not be in the future")

    v.check(runtime is not None and runtime != 0, "runtime", "must be provided")
    v.check(runtime is None or runtime > 0, "runtime", "must be a positive integer")

    v.check(genres is not None, "genres", "must be provided")
    v.check(genres is None or len(genres) >= 1, "genres", "must contain at least 1 genre")
    v.check(genres is None or len(genres) <= 5, "genres", "must not contain more than 5 genres")
    v.check(genres is None or unique(genres), "genres", "must not contain duplicate values")


# ═══════════════════════════════════════════════════════════
# Filters & pagination
# ═══════════════════════════════════════════════════════════


@dataclass
class Filters:
    page: int = 1
    page_size: int = 20
    sort: str = "id"
    sort_safelist: tuple[str, ...] = SORT_SAFELIST

    def sort_column(self) -> str:
        """The column to sort by, taken only from the safelist."""
        if self.sort in self.sort_safelist:
            return self.sort.lstrip("-")
        # validate_filters must have rejected this before we got here
        raise InternalInvariantViolation(f"unsafe sort parameter: {self.sort!r}")

    def sort_descending(self) -> bool:
        return self.sort.startswith("-")

    def limit(self) -> int:
        return self.page_size

    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def validate_filters(v: Validator, f: Filters) -> None:
    v.check(f.page > 0, "page", "must be greater than zero")
    v.check(f.page <= 10_000_000, "page", "must be a maximum of 10 million")
    v.check(f.page_size > 0, "page_size", "must be greater than zero")
    v.check(f.page_size <= 100, "page_size", "must be a maximum of 100")
    v.check(permitted_value(f.sort, *f.sort_safelist), "sort", "invalid sort value")


def calculate_metadata(total_records: int, page: int, page_size: int) -> dict:
    if total_records == 0:
        return {}
    return {
        "current_page": page,
        "page_size": page_size,
        "first_page": 1,
        "last_page": math.ceil(total_records / page_size),
        "total_records": total_records,
    }


# ═══════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════


class MovieService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, title: str, year: int, runtime: int, genres: list[str]) -> Movie:
        movie = Movie(title=title, year=year, runtime=runtime, genres=genres)
        self.db.add(movie)
        await bounded(self.db.commit())
        await bounded(self.db.refresh(movie))  # load created_at from the server
        return movie

    async def get(self, movie_id: int) -> Movie:
        if movie_id < 1:
            raise NotFoundError()
        result = await bounded(
            self.db.execute(select(Movie).where(Movie.id == movie_id))
        )
        movie = result.scalars().first()
        if movie is None:
            raise NotFoundError()
        return movie

    async def update(self, movie_id: int, expected_version: int, **fields: Any) -> int:
        """Conditionally update a movie. Returns the new version."""
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise TypeError(f"cannot update movie fields: {sorted(unknown)}")

        stmt = (
            update(Movie)
            .where(Movie.id == movie_id, Movie.version == expected_version)
            .values(**fields, version=Movie.version + 1)
            .returning(Movie.version)
            .execution_options(synchronize_session=False)
        )
        result = await bounded(self.db.execute(stmt))
        new_version = result.scalar_one_or_none()
        await bounded(self.db.commit())

        if new_version is None:
            raise EditConflictError()
        return new_version

    async def delete(self, movie_id: int) -> None:
        if movie_id < 1:
            raise NotFoundError()
        result = await bounded(
            self.db.execute(
                delete(Movie)
                .where(Movie.id == movie_id)
                .execution_options(synchronize_session=False)
            )
        )
        await bounded(self.db.commit())
        if result.rowcount == 0:
            raise NotFoundError()

    async def get_all(
        self,
        title: str = "",
        genres: Optional[list[str]] = None,
        filters: Optional[Filters] = None,
    ) -> tuple[list[Movie], dict]:
        """List movies matching title/genres, paginated and sorted.

        title is a case-insensitive substring match. genres uses array
        containment (every requested genre must be present), which is only
        available on PostgreSQL.
        """
        filters = filters or Filters()
        column = getattr(Movie, filters.sort_column())
        order = column.desc() if filters.sort_descending() else column.asc()

        query = select(Movie, func.count().over().label("total_records"))
        if title:
            query = query.where(func.lower(Movie.title).contains(title.lower(), autoescape=True))
        if genres:
            query = query.where(Movie.genres.contains(genres))
        query = (
            query.order_by(order, Movie.id.asc())
            .limit(filters.limit())
            .offset(filters.offset())
        )

        result = await bounded(self.db.execute(query))
        rows = result.all()
        total = rows[0].total_records if rows else 0
        movies = [row.Movie for row in rows]
        return movies, calculate_metadata(total, filters.page, filters.page_size)
