"""Opaque scoped tokens.

A token is 16 bytes from the OS CSPRNG, encoded as unpadded base-32 for the
client (always 26 characters, e.g. Y3QMGX3PJ3WLRL2YRTQGQ6KRHU). The database
only ever sees the SHA-256 of that string, so a leaked tokens table does not
leak usable credentials.
"""

import base64
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from greenlight.errors import EntropyError
from greenlight.validator import Validator

SCOPE_ACTIVATION = "activation"
SCOPE_AUTHENTICATION = "authentication"
SCOPE_PASSWORD_RESET = "password-reset"

TOKEN_BYTES = 16
TOKEN_PLAINTEXT_LENGTH = 26


@dataclass
class Token:
    plaintext: str
    hash: bytes
    user_id: int
    expiry: datetime
    scope: str


def hash_plaintext(plaintext: str) -> bytes:
    return hashlib.sha256(plaintext.encode("utf-8")).digest()


def generate_token(user_id: int, ttl: timedelta, scope: str) -> Token:
    """Create a token for user_id valid for ttl from now."""
    try:
        random_bytes = secrets.token_bytes(TOKEN_BYTES)
    except (OSError, NotImplementedError) as e:
        raise EntropyError(f"secure random source failed: {e}") from e

    plaintext = base64.b32encode(random_bytes).decode("ascii").rstrip("=")
    return Token(
        plaintext=plaintext,
        hash=hash_plaintext(plaintext),
        user_id=user_id,
        expiry=datetime.now(timezone.utc) + ttl,
        scope=scope,
    )


def validate_token_plaintext(v: Validator, plaintext: Optional[str]) -> None:
    v.check(bool(plaintext), "token", "must be provided")
    v.check(
        len(plaintext or "") == TOKEN_PLAINTEXT_LENGTH,
        "token",
        "must be 26 bytes long",
    )
