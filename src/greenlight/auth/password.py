"""Password credential — bcrypt hash plus the transient plaintext.

bcrypt salts automatically and its work factor (rounds=12 by default) costs
roughly 100-250ms per hash on commodity hardware. The plaintext is kept on
the object only for the lifetime of one request, so the caller can validate
it after hashing. It is never persisted.

matches() keeps two outcomes apart: a wrong password is a plain False, while
a missing or malformed stored hash raises PasswordHashError. The first is a
client failing to log in, the second is a server bug.
"""

from typing import Optional

import bcrypt

from greenlight.config import settings
from greenlight.errors import HashingError, InternalInvariantViolation, PasswordHashError
from greenlight.validator import EMAIL_RX, Validator, matches

# bcrypt only looks at the first 72 bytes; longer inputs are rejected upstream.
MAX_PASSWORD_BYTES = 72
MIN_PASSWORD_BYTES = 8


class Password:
    def __init__(self, hash: Optional[bytes] = None):
        self.plaintext: Optional[str] = None
        self.hash = hash

    def set(self, plaintext: str, rounds: Optional[int] = None) -> None:
        """Hash plaintext and keep both the hash and the plaintext."""
        pw_bytes = plaintext.encode("utf-8")[:MAX_PASSWORD_BYTES]
        try:
            salt = bcrypt.gensalt(rounds=rounds or settings.password_hash_rounds)
            hashed = bcrypt.hashpw(pw_bytes, salt)
        except (ValueError, TypeError) as e:
            raise HashingError(f"bcrypt failed to hash password: {e}") from e

        self.plaintext = plaintext
        self.hash = hashed

    def matches(self, plaintext: str) -> bool:
        """Constant-time check of plaintext against the stored hash."""
        if not self.hash:
            raise PasswordHashError("no password hash to compare against")
        pw_bytes = plaintext.encode("utf-8")[:MAX_PASSWORD_BYTES]
        try:
            return bcrypt.checkpw(pw_bytes, bytes(self.hash))
        except (ValueError, TypeError) as e:
            raise PasswordHashError(f"stored password hash is malformed: {e}") from e


def validate_email(v: Validator, email: Optional[str]) -> None:
    v.check(bool(email), "email", "must be provided")
    v.check(bool(email) and matches(email, EMAIL_RX), "email", "must be a valid email address")


def validate_password_plaintext(v: Validator, password: Optional[str]) -> None:
    size = len(password.encode("utf-8")) if password else 0
    v.check(bool(password), "password", "must be provided")
    v.check(size >= MIN_PASSWORD_BYTES, "password", "must be at least 8 bytes long")
    v.check(size <= MAX_PASSWORD_BYTES, "password", "must not be more than 72 bytes long")


def validate_user(v: Validator, name: Optional[str], email: Optional[str], password: Password) -> None:
    v.check(bool(name), "name", "must be provided")
    v.check(len((name or "").encode("utf-8")) <= 500, "name", "must not be more than 500 bytes long")

    validate_email(v, email)

    if password.plaintext is not None:
        validate_password_plaintext(v, password.plaintext)

    # A user without a hash means we forgot to call set(); not the client's fault.
    if password.hash is None:
        raise InternalInvariantViolation("missing password hash for user")
