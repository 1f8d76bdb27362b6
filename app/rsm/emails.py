"""
Outbound email (password reset and account invitations).

MAIL_BACKEND selects the transport:
- smtp: deliver through SMTP_HOST:SMTP_PORT
- console: log the message (development default)
- memory: append to app.extensions["mail_outbox"] (tests)
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from urllib.parse import urlencode

from flask import current_app

logger = logging.getLogger(__name__)


def _build_message(to: str, subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = current_app.config["EMAIL_FROM"]
    msg["To"] = to
    msg.set_content(body)
    return msg


def send_email(to: str, subject: str, body: str) -> None:
    cfg = current_app.config
    backend = cfg.get("MAIL_BACKEND", "console")
    msg = _build_message(to, subject, body)

    if backend == "memory":
        current_app.extensions.setdefault("mail_outbox", []).append(msg)
        return
    if backend == "console":
        logger.info("Email to=%s subject=%r\n%s", to, subject, body)
        return
    if backend != "smtp":
        raise RuntimeError(f"Unknown MAIL_BACKEND {backend!r} (expected smtp, console or memory).")

    with smtplib.SMTP(cfg["SMTP_HOST"], cfg["SMTP_PORT"], timeout=10) as smtp:
        if cfg.get("SMTP_USE_TLS"):
            smtp.starttls()
        if cfg.get("SMTP_USER"):
            smtp.login(cfg["SMTP_USER"], cfg["SMTP_PASSWORD"])
        smtp.send_message(msg)
    logger.info("Email sent to=%s subject=%r", to, subject)


def _link(path: str, email: str, token: str) -> str:
    query = urlencode({"email": email, "token": token})
    return f"{current_app.config['APP_URL']}{path}?{query}"


def send_password_reset_email(*, to: str, token: str) -> None:
    link = _link("/reset-password", to, token)
    send_email(
        to,
        "Reset your password",
        "A password reset was requested for your account.\n\n"
        f"Open the link below to choose a new password:\n{link}\n\n"
        "If you did not request this, you can ignore this email.",
    )


def send_invite_email(*, to: str, token: str) -> None:
    link = _link("/accept-invite", to, token)
    send_email(
        to,
        "You have been invited to Related Services Manager",
        "An account has been created for you.\n\n"
        f"Open the link below to set your password and activate it:\n{link}",
    )
