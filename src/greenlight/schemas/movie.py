"""Pydantic schemas for movies.

Request bodies are shape-only: fields are optional and strictly typed so a
wrong JSON type is a 400, while missing or out-of-range values fall through
to validate_movie() and come back as a 422 field map.

runtime travels as the string "<minutes> mins" in both directions.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, PlainSerializer, StrictInt, StrictStr

from greenlight.validator import INTEGER_RX, matches

INVALID_RUNTIME_FORMAT = "invalid runtime format"


def parse_runtime(value) -> int:
    if not isinstance(value, str):
        raise ValueError(INVALID_RUNTIME_FORMAT)
    parts = value.split(" ")
    if len(parts) != 2 or parts[1] != "mins":
        raise ValueError(INVALID_RUNTIME_FORMAT)
    if not matches(parts[0], INTEGER_RX):
        raise ValueError(INVALID_RUNTIME_FORMAT)
    minutes = int(parts[0])
    if not -(2**31) <= minutes < 2**31:
        raise ValueError(INVALID_RUNTIME_FORMAT)
    return minutes


def format_runtime(minutes: int) -> str:
    return f"{minutes} mins"


# Request side parses "<n> mins"; response side only formats, since the
# value already comes out of the database as an int.
Runtime = Annotated[
    int,
    BeforeValidator(parse_runtime),
    PlainSerializer(format_runtime, return_type=str),
]
RuntimeOut = Annotated[int, PlainSerializer(format_runtime, return_type=str)]


class MovieCreate(BaseModel):
    title: Optional[StrictStr] = None
    year: Optional[StrictInt] = None
    runtime: Optional[Runtime] = None
    genres: Optional[list[StrictStr]] = None

    model_config = {"extra": "forbid"}


class MovieUpdate(MovieCreate):
    """Partial update — only fields present in the body are applied."""


class MovieRead(BaseModel):
    id: int
    title: str
    year: int
    runtime: RuntimeOut
    genres: list[str]
    version: int

    model_config = {"from_attributes": True}
