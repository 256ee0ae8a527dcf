"""Movie catalog tests.

Learn: Tests cover:
1. Create / show / update / delete through the API
2. Body validation — 400 for malformed input, 422 for invalid values
3. Optimistic concurrency — X-Expected-Version and racing writers
4. Listing — title filter, sorting, pagination metadata
"""

import asyncio

import pytest
import pytest_asyncio

from greenlight.errors import EditConflictError, InternalInvariantViolation
from greenlight.services.movie_service import Filters, MovieService, calculate_metadata
from greenlight.services.permission_service import MOVIES_READ, MOVIES_WRITE

MOANA = {"title": "Moana", "year": 2016, "runtime": "107 mins", "genres": ["animation", "adventure"]}


@pytest_asyncio.fixture()
async def writer(make_user):
    _, token = await make_user(permissions=(MOVIES_READ, MOVIES_WRITE))
    return {"Authorization": f"Bearer {token}"}


async def _create(client, headers, **overrides):
    r = await client.post("/v1/movies", headers=headers, json={**MOANA, **overrides})
    assert r.status_code == 201, r.text
    return r.json()["movie"]


# ═══════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_movie(client, writer):
    r = await client.post("/v1/movies", headers=writer, json=MOANA)
    assert r.status_code == 201
    movie = r.json()["movie"]
    assert movie["title"] == "Moana"
    assert movie["year"] == 2016
    assert movie["runtime"] == "107 mins"
    assert movie["genres"] == ["animation", "adventure"]
    assert movie["version"] == 1
    assert r.headers["Location"] == f"/v1/movies/{movie['id']}"


@pytest.mark.asyncio
async def test_show_movie(client, writer):
    created = await _create(client, writer)
    r = await client.get(f"/v1/movies/{created['id']}", headers=writer)
    assert r.status_code == 200
    assert r.json() == {"movie": created}


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/v1/movies/9999", "/v1/movies/0", "/v1/movies/-1", "/v1/movies/abc"])
async def test_show_missing_movie_is_404(client, writer, path):
    r = await client.get(path, headers=writer)
    assert r.status_code == 404
    assert r.json() == {"error": "the requested resource could not be found"}


@pytest.mark.asyncio
async def test_partial_update(client, writer):
    created = await _create(client, writer)
    r = await client.patch(
        f"/v1/movies/{created['id']}",
        headers=writer,
        json={"title": "Moana (2016)", "runtime": "108 mins"},
    )
    assert r.status_code == 200
    movie = r.json()["movie"]
    assert movie["title"] == "Moana (2016)"
    assert movie["runtime"] == "108 mins"
    assert movie["year"] == 2016
    assert movie["genres"] == ["animation", "adventure"]
    assert movie["version"] == 2

    r = await client.get(f"/v1/movies/{created['id']}", headers=writer)
    assert r.json()["movie"] == movie


@pytest.mark.asyncio
async def test_update_invalid_value_is_422(client, writer):
    created = await _create(client, writer)
    r = await client.patch(f"/v1/movies/{created['id']}", headers=writer, json={"year": 1500})
    assert r.status_code == 422
    assert r.json() == {"error": {"year": "must be greater than 1888"}}


@pytest.mark.asyncio
async def test_delete_movie(client, writer):
    created = await _create(client, writer)
    r = await client.delete(f"/v1/movies/{created['id']}", headers=writer)
    assert r.status_code == 200
    assert r.json() == {"message": "movie successfully deleted"}

    r = await client.delete(f"/v1/movies/{created['id']}", headers=writer)
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Body validation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_reports_every_invalid_field(client, writer):
    r = await client.post("/v1/movies", headers=writer, json={"genres": ["drama", "drama"]})
    assert r.status_code == 422
    assert r.json() == {
        "error": {
            "title": "must be provided",
            "year": "must be provided",
            "runtime": "must be provided",
            "genres": "must not contain duplicate values",
        }
    }


@pytest.mark.asyncio
async def test_create_rejects_future_year_and_too_many_genres(client, writer):
    r = await client.post(
        "/v1/movies",
        headers=writer,
        json={**MOANA, "year": 3000, "genres": ["a", "b", "c", "d", "e", "f"]},
    )
    assert r.status_code == 422
    errors = r.json()["error"]
    assert errors["year"] == "must not be in the future"
    assert errors["genres"] == "must not contain more than 5 genres"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "runtime",
    ["107", "107 minutes", "abc mins", 107, "1_07 mins", "+107 mins"],
)
async def test_bad_runtime_format_is_400(client, writer, runtime):
    r = await client.post("/v1/movies", headers=writer, json={**MOANA, "runtime": runtime})
    assert r.status_code == 400
    assert r.json() == {"error": "invalid runtime format"}


@pytest.mark.asyncio
async def test_wrong_json_type_is_400(client, writer):
    r = await client.post("/v1/movies", headers=writer, json={**MOANA, "title": 123})
    assert r.status_code == 400
    assert r.json() == {"error": 'body contains incorrect JSON type for field "title"'}


@pytest.mark.asyncio
async def test_unknown_key_is_400(client, writer):
    r = await client.post("/v1/movies", headers=writer, json={**MOANA, "rating": "PG"})
    assert r.status_code == 400
    assert r.json() == {"error": 'body contains unknown key "rating"'}


@pytest.mark.asyncio
async def test_badly_formed_json_is_400(client, writer):
    r = await client.post(
        "/v1/movies",
        headers={**writer, "Content-Type": "application/json"},
        content=b'{"title": "Moana", }',
    )
    assert r.status_code == 400
    assert r.json() == {"error": "body contains badly-formed JSON"}


# ═══════════════════════════════════════════════════════════
# Optimistic concurrency
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_expected_version_mismatch_is_409(client, writer):
    created = await _create(client, writer)
    r = await client.patch(
        f"/v1/movies/{created['id']}",
        headers={**writer, "X-Expected-Version": "7"},
        json={"title": "Nope"},
    )
    assert r.status_code == 409
    assert r.json() == {
        "error": "unable to update the record due to an edit conflict, please try again"
    }

    r = await client.get(f"/v1/movies/{created['id']}", headers=writer)
    assert r.json()["movie"]["title"] == "Moana"
    assert r.json()["movie"]["version"] == 1


@pytest.mark.asyncio
async def test_expected_version_match_updates(client, writer):
    created = await _create(client, writer)
    r = await client.patch(
        f"/v1/movies/{created['id']}",
        headers={**writer, "X-Expected-Version": "1"},
        json={"title": "Moana!"},
    )
    assert r.status_code == 200
    assert r.json()["movie"]["version"] == 2


@pytest.mark.asyncio
async def test_stale_version_conflicts(session_factory):
    async with session_factory() as db:
        svc = MovieService(db)
        movie = await svc.insert("Heat", 1995, 170, ["crime"])
        assert await svc.update(movie.id, 1, title="Heat (1995)") == 2
        with pytest.raises(EditConflictError):
            await svc.update(movie.id, 1, title="Stale write")


@pytest.mark.asyncio
async def test_concurrent_updates_exactly_one_wins(session_factory):
    """Two writers racing from the same version: one wins, one conflicts."""
    async with session_factory() as db:
        movie = await MovieService(db).insert("Heat", 1995, 170, ["crime"])

    async def write(title):
        async with session_factory() as db:
            return await MovieService(db).update(movie.id, movie.version, title=title)

    results = await asyncio.gather(write("A"), write("B"), return_exceptions=True)

    wins = [r for r in results if r == 2]
    conflicts = [r for r in results if isinstance(r, EditConflictError)]
    assert len(wins) == 1
    assert len(conflicts) == 1

    async with session_factory() as db:
        final = await MovieService(db).get(movie.id)
        assert final.version == 2
        assert final.title in ("A", "B")


@pytest.mark.asyncio
async def test_update_after_delete_conflicts(session_factory):
    async with session_factory() as db:
        svc = MovieService(db)
        movie = await svc.insert("Heat", 1995, 170, ["crime"])
        await svc.delete(movie.id)
        with pytest.raises(EditConflictError):
            await svc.update(movie.id, 1, title="Ghost")


# ═══════════════════════════════════════════════════════════
# Listing
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_empty_has_empty_metadata(client, writer):
    r = await client.get("/v1/movies", headers=writer)
    assert r.status_code == 200
    assert r.json() == {"metadata": {}, "movies": []}


@pytest.mark.asyncio
async def test_list_title_filter_and_sort(client, writer):
    await _create(client, writer, title="The Breakfast Club", year=1985)
    await _create(client, writer, title="Black Panther", year=2018)
    await _create(client, writer, title="The Club", year=1999)

    r = await client.get("/v1/movies?title=club&sort=-year", headers=writer)
    assert r.status_code == 200
    body = r.json()
    assert [m["title"] for m in body["movies"]] == ["The Club", "The Breakfast Club"]
    assert body["metadata"]["total_records"] == 2


@pytest.mark.asyncio
async def test_list_pagination_metadata(client, writer):
    for i in range(5):
        await _create(client, writer, title=f"Movie {i}")

    r = await client.get("/v1/movies?page=2&page_size=2&sort=id", headers=writer)
    body = r.json()
    assert [m["title"] for m in body["movies"]] == ["Movie 2", "Movie 3"]
    assert body["metadata"] == {
        "current_page": 2,
        "page_size": 2,
        "first_page": 1,
        "last_page": 3,
        "total_records": 5,
    }


@pytest.mark.asyncio
async def test_list_invalid_query_params(client, writer):
    r = await client.get("/v1/movies?page=abc&page_size=1000&sort=rating", headers=writer)
    assert r.status_code == 422
    assert r.json() == {
        "error": {
            "page": "must be an integer value",
            "page_size": "must be a maximum of 100",
            "sort": "invalid sort value",
        }
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("page", ["1_0", "%2B5", "%205%20", "1.0", "%D9%A1"])
async def test_list_page_must_be_plain_integer(client, writer, page):
    r = await client.get(f"/v1/movies?page={page}", headers=writer)
    assert r.status_code == 422
    assert r.json() == {"error": {"page": "must be an integer value"}}


def test_calculate_metadata():
    assert calculate_metadata(0, 1, 20) == {}
    assert calculate_metadata(21, 2, 20)["last_page"] == 2


def test_unsafe_sort_column_is_internal_error():
    with pytest.raises(InternalInvariantViolation):
        Filters(sort="title; DROP TABLE movies").sort_column()
