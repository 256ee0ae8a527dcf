"""Query-string readers shared by list endpoints.

Each reader falls back to a default when the key is absent. read_int
records a validation error (rather than raising) so every bad parameter is
reported together. Only plain decimal digits with an optional leading minus
count as an integer; int() alone would also take "1_0", " 5 " and "+5".
"""

from starlette.datastructures import QueryParams

from greenlight.validator import INTEGER_RX, Validator, matches


def read_string(qs: QueryParams, key: str, default: str) -> str:
    value = qs.get(key)
    return value if value else default


def read_csv(qs: QueryParams, key: str, default: list[str]) -> list[str]:
    value = qs.get(key)
    if not value:
        return default
    return [part for part in value.split(",") if part]


def read_int(qs: QueryParams, key: str, default: int, v: Validator) -> int:
    value = qs.get(key)
    if not value:
        return default
    if not matches(value, INTEGER_RX):
        v.add_error(key, "must be an integer value")
        return default
    return int(value)
