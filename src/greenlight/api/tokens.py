"""Tokens API — issue authentication, activation and password-reset tokens.

Learn: Plaintext tokens leave the server exactly once: in the 201 body for
authentication tokens, by email for the other two scopes. Issuing a new
activation or reset token first deletes the user's older ones of the same
scope, so only the latest email works.
"""

from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from greenlight.auth.password import Password, validate_email, validate_password_plaintext
from greenlight.auth.tokens import SCOPE_ACTIVATION, SCOPE_AUTHENTICATION, SCOPE_PASSWORD_RESET
from greenlight.config import settings
from greenlight.db.engine import get_db
from greenlight.errors import InactiveAccount, InvalidCredentials, ValidationError
from greenlight.mailer import Mailer, get_mailer
from greenlight.schemas.user import CredentialsRequest, EmailRequest, TokenRead
from greenlight.services.token_service import TokenService
from greenlight.services.user_service import UserService
from greenlight.validator import Validator

router = APIRouter(prefix="/tokens")

NO_MATCHING_EMAIL = "no matching email address found"


@router.post("/authentication", status_code=201)
async def create_authentication_token(
    body: CredentialsRequest, db: AsyncSession = Depends(get_db)
):
    """Exchange email + password for a bearer token."""
    v = Validator()
    validate_email(v, body.email)
    validate_password_plaintext(v, body.password)
    v.raise_if_invalid()

    user = await UserService(db).get_by_email(body.email)
    if user is None:
        raise InvalidCredentials()

    ok = await run_in_threadpool(Password(user.password_hash).matches, body.password)
    if not ok:
        raise InvalidCredentials()

    if not user.activated:
        raise InactiveAccount()

    token = await TokenService(db).new_token(
        user.id, timedelta(hours=settings.authentication_token_ttl_hours), SCOPE_AUTHENTICATION
    )
    return {"authentication_token": TokenRead(token=token.plaintext, expiry=token.expiry)}


@router.post("/activation", status_code=202)
async def create_activation_token(
    body: EmailRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    v = Validator()
    validate_email(v, body.email)
    v.raise_if_invalid()

    user = await UserService(db).get_by_email(body.email)
    if user is None:
        raise ValidationError({"email": NO_MATCHING_EMAIL})
    if user.activated:
        raise ValidationError({"email": "user has already been activated"})

    tokens = TokenService(db)
    await tokens.delete_all_for_user(SCOPE_ACTIVATION, user.id)
    token = await tokens.new_token(
        user.id, timedelta(hours=settings.activation_token_ttl_hours), SCOPE_ACTIVATION
    )
    background_tasks.add_task(
        mailer.send_in_background,
        user.email,
        "token_activation",
        {"activation_token": token.plaintext},
    )
    return {"message": "an email will be sent to you containing activation instructions"}


@router.post("/password-reset", status_code=202)
async def create_password_reset_token(
    body: EmailRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    v = Validator()
    validate_email(v, body.email)
    v.raise_if_invalid()

    user = await UserService(db).get_by_email(body.email)
    if user is None:
        raise ValidationError({"email": NO_MATCHING_EMAIL})
    if not user.activated:
        raise ValidationError({"email": "user account must be activated"})

    tokens = TokenService(db)
    await tokens.delete_all_for_user(SCOPE_PASSWORD_RESET, user.id)
    token = await tokens.new_token(
        user.id,
        timedelta(minutes=settings.password_reset_token_ttl_minutes),
        SCOPE_PASSWORD_RESET,
    )
    background_tasks.add_task(
        mailer.send_in_background,
        user.email,
        "token_password_reset",
        {"password_reset_token": token.plaintext},
    )
    return {"message": "an email will be sent to you containing password reset instructions"}
