"""Pydantic schemas for users and tokens."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, StrictStr


class RegisterRequest(BaseModel):
    name: Optional[StrictStr] = None
    email: Optional[StrictStr] = None
    password: Optional[StrictStr] = None

    model_config = {"extra": "forbid"}


class ActivateRequest(BaseModel):
    token: Optional[StrictStr] = None

    model_config = {"extra": "forbid"}


class PasswordResetRequest(BaseModel):
    password: Optional[StrictStr] = None
    token: Optional[StrictStr] = None

    model_config = {"extra": "forbid"}


class CredentialsRequest(BaseModel):
    email: Optional[StrictStr] = None
    password: Optional[StrictStr] = None

    model_config = {"extra": "forbid"}


class EmailRequest(BaseModel):
    email: Optional[StrictStr] = None

    model_config = {"extra": "forbid"}


class UserRead(BaseModel):
    id: int
    created_at: datetime
    name: str
    email: str
    activated: bool

    model_config = {"from_attributes": True}


class TokenRead(BaseModel):
    """A freshly issued token — the only time the plaintext is returned."""

    token: str
    expiry: datetime
