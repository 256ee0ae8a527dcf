"""Email templates — subject, plain-text body and HTML body per message.

Placeholders use str.format names. Values are HTML-escaped before they
are substituted into the HTML body.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    plain: str
    html: str


TEMPLATES: dict[str, EmailTemplate] = {
    "user_welcome": EmailTemplate(
        subject="Welcome to Greenlight!",
        plain=(
            "Hi,\n\n"
            "Thanks for signing up for a Greenlight account. We're excited to have you on board!\n\n"
            "For future reference, your user ID number is {user_id}.\n\n"
            "Please send a request to the `PUT /v1/users/activated` endpoint with the "
            "following JSON body to activate your account:\n\n"
            '{{"token": "{activation_token}"}}\n\n'
            "Please note that this is a one-time use token and it will expire in 3 days.\n\n"
            "Thanks,\n\nThe Greenlight Team\n"
        ),
        html=(
            "<!doctype html><html><head>"
            '<meta name="viewport" content="width=device-width" />'
            '<meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />'
            "</head><body>"
            "<p>Hi,</p>"
            "<p>Thanks for signing up for a Greenlight account. We're excited to have you on board!</p>"
            "<p>For future reference, your user ID number is {user_id}.</p>"
            "<p>Please send a request to the <code>PUT /v1/users/activated</code> endpoint "
            "with the following JSON body to activate your account:</p>"
            '<pre><code>{{"token": "{activation_token}"}}</code></pre>'
            "<p>Please note that this is a one-time use token and it will expire in 3 days.</p>"
            "<p>Thanks,</p><p>The Greenlight Team</p>"
            "</body></html>"
        ),
    ),
    "token_activation": EmailTemplate(
        subject="Activate your Greenlight account",
        plain=(
            "Hi,\n\n"
            "Please send a `PUT /v1/users/activated` request with the following JSON body "
            "to activate your account:\n\n"
            '{{"token": "{activation_token}"}}\n\n'
            "Please note that this is a one-time use token and it will expire in 3 days.\n\n"
            "Thanks,\n\nThe Greenlight Team\n"
        ),
        html=(
            "<!doctype html><html><body>"
            "<p>Hi,</p>"
            "<p>Please send a <code>PUT /v1/users/activated</code> request with the "
            "following JSON body to activate your account:</p>"
            '<pre><code>{{"token": "{activation_token}"}}</code></pre>'
            "<p>Please note that this is a one-time use token and it will expire in 3 days.</p>"
            "<p>Thanks,</p><p>The Greenlight Team</p>"
            "</body></html>"
        ),
    ),
    "token_password_reset": EmailTemplate(
        subject="Reset your Greenlight password",
        plain=(
            "Hi,\n\n"
            "Please send a `PUT /v1/users/password` request with the following JSON body "
            "to set a new password:\n\n"
            '{{"password": "your new password", "token": "{password_reset_token}"}}\n\n'
            "Please note that this is a one-time use token and it will expire in 45 minutes. "
            "If you need another token please make a `POST /v1/tokens/password-reset` request.\n\n"
            "Thanks,\n\nThe Greenlight Team\n"
        ),
        html=(
            "<!doctype html><html><body>"
            "<p>Hi,</p>"
            "<p>Please send a <code>PUT /v1/users/password</code> request with the "
            "following JSON body to set a new password:</p>"
            '<pre><code>{{"password": "your new password", "token": "{password_reset_token}"}}</code></pre>'
            "<p>Please note that this is a one-time use token and it will expire in 45 minutes. "
            "If you need another token please make a <code>POST /v1/tokens/password-reset</code> "
            "request.</p>"
            "<p>Thanks,</p><p>The Greenlight Team</p>"
            "</body></html>"
        ),
    ),
}
