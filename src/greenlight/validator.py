"""Field validation helper.

Handlers collect every failing check into one Validator and raise a single
ValidationError (422) listing all of them, rather than failing on the first.
Only the first message recorded for a field is kept.
"""

import re
from typing import Iterable

from greenlight.errors import ValidationError

EMAIL_RX = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9]"
    r"(?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*"
)
INTEGER_RX = re.compile(r"-?[0-9]+")


class Validator:
    def __init__(self):
        self.errors: dict[str, str] = {}

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        self.errors.setdefault(key, message)

    def check(self, ok: bool, key: str, message: str) -> None:
        if not ok:
            self.add_error(key, message)

    def raise_if_invalid(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)


def matches(value: str, rx: re.Pattern) -> bool:
    """True only when rx covers all of value, trailing newline included."""
    return rx.fullmatch(value) is not None


def permitted_value(value, *permitted) -> bool:
    return value in permitted


def unique(values: Iterable) -> bool:
    values = list(values)
    return len(values) == len(set(values))
