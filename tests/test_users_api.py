"""Account lifecycle tests — register, activate, log in, reset password.

Learn: Tests cover:
1. Registration: inactive user, welcome email with an activation token,
   default movies:read grant, duplicate email handling
2. Activation: token spent once, format and scope checks
3. Authentication tokens: credentials, inactive accounts
4. Re-issuing activation tokens and resetting passwords
"""

import pytest

from greenlight.auth.tokens import TOKEN_PLAINTEXT_LENGTH

PASSWORD = "pa55word-123"


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def _register(client, email="alice@example.com", name="Alice", password=PASSWORD):
    return await client.post(
        "/v1/users", json={"name": name, "email": email, "password": password}
    )


async def _login(client, email="alice@example.com", password=PASSWORD):
    return await client.post(
        "/v1/tokens/authentication", json={"email": email, "password": password}
    )


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client, mailer):
    r = await _register(client)
    assert r.status_code == 202
    user = r.json()["user"]
    assert user["name"] == "Alice"
    assert user["email"] == "alice@example.com"
    assert user["activated"] is False
    assert "password" not in user
    assert "password_hash" not in user

    recipient, template, data = mailer.sent[-1]
    assert recipient == "alice@example.com"
    assert template == "user_welcome"
    assert data["user_id"] == user["id"]
    assert len(data["activation_token"]) == TOKEN_PLAINTEXT_LENGTH


@pytest.mark.asyncio
async def test_register_duplicate_email_is_case_insensitive(client):
    assert (await _register(client)).status_code == 202
    r = await _register(client, email="ALICE@example.com", name="Other Alice")
    assert r.status_code == 422
    assert r.json() == {"error": {"email": "a user with this email address already exists"}}


@pytest.mark.asyncio
async def test_register_validation(client, mailer):
    r = await _register(client, email="not-an-email", name="", password="short")
    assert r.status_code == 422
    assert r.json() == {
        "error": {
            "name": "must be provided",
            "email": "must be a valid email address",
            "password": "must be at least 8 bytes long",
        }
    }
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_register_email_with_trailing_newline_rejected(client, mailer):
    assert (await _register(client)).status_code == 202
    r = await _register(client, email="alice@example.com\n", name="Newline Alice")
    assert r.status_code == 422
    assert r.json() == {"error": {"email": "must be a valid email address"}}
    assert len(mailer.sent) == 1


@pytest.mark.asyncio
async def test_register_empty_body_is_400(client):
    r = await client.post("/v1/users", content=b"", headers={"Content-Type": "application/json"})
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Activation
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_full_signup_flow(client, mailer):
    """Register → email token → activate → log in → reach a movies:read route."""
    await _register(client)
    activation_token = mailer.last("user_welcome")["activation_token"]

    # Not yet activated: correct credentials, but no session token.
    r = await _login(client)
    assert r.status_code == 403

    r = await client.put("/v1/users/activated", json={"token": activation_token})
    assert r.status_code == 200
    assert r.json()["user"]["activated"] is True

    r = await _login(client)
    assert r.status_code == 201
    issued = r.json()["authentication_token"]
    assert len(issued["token"]) == TOKEN_PLAINTEXT_LENGTH
    assert "expiry" in issued

    r = await client.get("/v1/movies", headers=_bearer(issued["token"]))
    assert r.status_code == 200

    # Registration grants read, not write.
    r = await client.delete("/v1/movies/1", headers=_bearer(issued["token"]))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_activation_token_is_single_use(client, mailer):
    await _register(client)
    token = mailer.last("user_welcome")["activation_token"]

    assert (await client.put("/v1/users/activated", json={"token": token})).status_code == 200
    r = await client.put("/v1/users/activated", json={"token": token})
    assert r.status_code == 422
    assert r.json() == {"error": {"token": "invalid or expired activation token"}}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body,message",
    [
        ({}, "must be provided"),
        ({"token": "TOOSHORT"}, "must be 26 bytes long"),
    ],
)
async def test_activation_token_format(client, body, message):
    r = await client.put("/v1/users/activated", json=body)
    assert r.status_code == 422
    assert r.json() == {"error": {"token": message}}


# ═══════════════════════════════════════════════════════════
# Authentication tokens
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_wrong_password_is_401(client, make_user):
    await make_user(email="bob@example.com", with_token=False)
    r = await _login(client, email="bob@example.com", password="wrong-password")
    assert r.status_code == 401
    assert r.json() == {"error": "invalid authentication credentials"}


@pytest.mark.asyncio
async def test_login_unknown_email_is_401(client):
    r = await _login(client, email="nobody@example.com")
    assert r.status_code == 401
    assert r.json() == {"error": "invalid authentication credentials"}


@pytest.mark.asyncio
async def test_login_email_is_case_insensitive(client, make_user):
    await make_user(email="bob@example.com", with_token=False)
    r = await _login(client, email="Bob@Example.com")
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_login_validation(client):
    r = await client.post("/v1/tokens/authentication", json={"email": "bob@example.com"})
    assert r.status_code == 422
    assert r.json() == {"error": {"password": "must be provided"}}


# ═══════════════════════════════════════════════════════════
# Re-issuing activation tokens
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_reissue_activation_token_supersedes_old(client, mailer):
    await _register(client)
    old = mailer.last("user_welcome")["activation_token"]

    r = await client.post("/v1/tokens/activation", json={"email": "alice@example.com"})
    assert r.status_code == 202
    new = mailer.last("token_activation")["activation_token"]
    assert new != old

    r = await client.put("/v1/users/activated", json={"token": old})
    assert r.status_code == 422
    r = await client.put("/v1/users/activated", json={"token": new})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_reissue_activation_for_active_user(client, make_user):
    await make_user(email="bob@example.com", with_token=False)
    r = await client.post("/v1/tokens/activation", json={"email": "bob@example.com"})
    assert r.status_code == 422
    assert r.json() == {"error": {"email": "user has already been activated"}}


@pytest.mark.asyncio
async def test_reissue_activation_unknown_email(client):
    r = await client.post("/v1/tokens/activation", json={"email": "nobody@example.com"})
    assert r.status_code == 422
    assert r.json() == {"error": {"email": "no matching email address found"}}


# ═══════════════════════════════════════════════════════════
# Password reset
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_password_reset_flow(client, mailer, make_user):
    _, session_token = await make_user(email="bob@example.com", password=PASSWORD)

    r = await client.post("/v1/tokens/password-reset", json={"email": "bob@example.com"})
    assert r.status_code == 202
    reset_token = mailer.last("token_password_reset")["password_reset_token"]

    r = await client.put(
        "/v1/users/password", json={"password": "n3w-pa55word", "token": reset_token}
    )
    assert r.status_code == 200
    assert r.json() == {"message": "your password was successfully reset"}

    # Existing sessions are revoked and the reset token is spent.
    r = await client.get("/v1/healthcheck", headers=_bearer(session_token))
    assert r.status_code == 401
    r = await client.put(
        "/v1/users/password", json={"password": "another-pa55word", "token": reset_token}
    )
    assert r.status_code == 422

    assert (await _login(client, email="bob@example.com")).status_code == 401
    assert (await _login(client, email="bob@example.com", password="n3w-pa55word")).status_code == 201


@pytest.mark.asyncio
async def test_password_reset_requires_activated_account(client, make_user):
    await make_user(email="bob@example.com", activated=False, with_token=False)
    r = await client.post("/v1/tokens/password-reset", json={"email": "bob@example.com"})
    assert r.status_code == 422
    assert r.json() == {"error": {"email": "user account must be activated"}}


@pytest.mark.asyncio
async def test_password_reset_validates_new_password(client):
    r = await client.put("/v1/users/password", json={"password": "short", "token": "A" * 26})
    assert r.status_code == 422
    assert r.json() == {"error": {"password": "must be at least 8 bytes long"}}
