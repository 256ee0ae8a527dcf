"""Outbound email: SMTP mailer and the message templates it renders."""

from greenlight.mailer.mailer import Mailer, get_mailer

__all__ = ["Mailer", "get_mailer"]
