"""Users API — registration, activation, password reset.

Learn: Routes for the account lifecycle:
- POST /users → create an inactive account, email an activation token
- PUT /users/activated → spend an activation token
- PUT /users/password → spend a password-reset token

bcrypt is deliberately slow, so hashing runs in the threadpool rather than
on the event loop. Emails go out as background tasks after the response.
"""

from datetime import timedelta

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from greenlight.auth.password import Password, validate_password_plaintext, validate_user
from greenlight.auth.tokens import (
    SCOPE_ACTIVATION,
    SCOPE_AUTHENTICATION,
    SCOPE_PASSWORD_RESET,
    validate_token_plaintext,
)
from greenlight.config import settings
from greenlight.db.engine import get_db
from greenlight.errors import ValidationError
from greenlight.mailer import Mailer, get_mailer
from greenlight.schemas.user import ActivateRequest, PasswordResetRequest, RegisterRequest, UserRead
from greenlight.services.permission_service import MOVIES_READ, PermissionService
from greenlight.services.token_service import TokenService
from greenlight.services.user_service import DuplicateEmailError, UserService
from greenlight.validator import Validator

logger = structlog.get_logger()

router = APIRouter(prefix="/users")


async def hash_password(plaintext: str) -> Password:
    password = Password()
    await run_in_threadpool(password.set, plaintext)
    return password


# ─── Registration ────────────────────────────────────────


@router.post("", status_code=202)
async def register_user(
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Create an inactive account and email its activation token."""
    password = await hash_password(body.password or "")

    v = Validator()
    validate_user(v, body.name, body.email, password)
    v.raise_if_invalid()

    try:
        user = await UserService(db).insert(
            name=body.name,
            email=body.email,
            password_hash=password.hash,
        )
    except DuplicateEmailError:
        raise ValidationError({"email": "a user with this email address already exists"})

    await PermissionService(db).add_for_user(user.id, MOVIES_READ)

    token = await TokenService(db).new_token(
        user.id, timedelta(hours=settings.activation_token_ttl_hours), SCOPE_ACTIVATION
    )
    background_tasks.add_task(
        mailer.send_in_background,
        user.email,
        "user_welcome",
        {"activation_token": token.plaintext, "user_id": user.id},
    )

    logger.info("user.registered", user_id=user.id)
    return {"user": UserRead.model_validate(user)}


# ─── Activation ──────────────────────────────────────────


@router.put("/activated")
async def activate_user(body: ActivateRequest, db: AsyncSession = Depends(get_db)):
    v = Validator()
    validate_token_plaintext(v, body.token)
    v.raise_if_invalid()

    tokens = TokenService(db)
    user = await tokens.get_user_for_token(SCOPE_ACTIVATION, body.token)
    if user is None:
        raise ValidationError({"token": "invalid or expired activation token"})

    user = await UserService(db).update(user, activated=True)
    await tokens.delete_all_for_user(SCOPE_ACTIVATION, user.id)

    logger.info("user.activated", user_id=user.id)
    return {"user": UserRead.model_validate(user)}


# ─── Password reset ──────────────────────────────────────


@router.put("/password")
async def reset_password(body: PasswordResetRequest, db: AsyncSession = Depends(get_db)):
    """Set a new password, then revoke every reset and session token."""
    v = Validator()
    validate_password_plaintext(v, body.password)
    validate_token_plaintext(v, body.token)
    v.raise_if_invalid()

    tokens = TokenService(db)
    user = await tokens.get_user_for_token(SCOPE_PASSWORD_RESET, body.token)
    if user is None:
        raise ValidationError({"token": "invalid or expired password reset token"})

    password = await hash_password(body.password)
    await UserService(db).update(user, password_hash=password.hash)

    await tokens.delete_all_for_user(SCOPE_PASSWORD_RESET, user.id)
    await tokens.delete_all_for_user(SCOPE_AUTHENTICATION, user.id)

    logger.info("user.password_reset", user_id=user.id)
    return {"message": "your password was successfully reset"}
