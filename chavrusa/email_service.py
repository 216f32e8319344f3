"""
Anonymous email relay over SMTP
Provides relay notifications using MJML templates with a plain-text alternative

Email addresses stay server-side: the poster is notified of responses and the
respondent is notified of replies without either address being exposed.
"""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from mjml import mjml_to_html

from .config import get_smtp_settings
from .email_templates import (
    RelayEmail,
    new_response_template,
    owner_reply_template,
    post_live_template,
)

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 15
GMAIL_HOST = "smtp.gmail.com"
PLACEHOLDER_MARKERS = {
    "host": "example.com",
    "user": "your_smtp_user",
    "password": "your_smtp_password",
}


class NotifyFailure(str, Enum):
    """What a relay send does when delivery fails"""

    WARN = "warn"  # log and report, caller keeps its side effects
    FAIL = "fail"  # raise, caller aborts


class RelayError(Exception):
    pass


class RelayNotConfiguredError(RelayError):
    pass


class RelayDeliveryError(RelayError):
    pass


def is_relay_configured(settings: Optional[dict] = None) -> bool:
    """SMTP settings are present and are not the sample .env placeholders"""
    settings = settings or get_smtp_settings()
    if not settings["host"] or not settings["user"] or not settings["password"]:
        return False
    return not any(marker in settings[field] for field, marker in PLACEHOLDER_MARKERS.items())


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a mapping with 'html' and 'errors' keys
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise RelayDeliveryError(f"Failed to compile MJML template: {str(e)}") from e


def build_message(settings: dict, to: str, email: RelayEmail) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = email.subject
    msg["From"] = settings["from_address"]
    msg["To"] = to

    # Plain text first so clients that prefer HTML pick the last part
    msg.attach(MIMEText(email.text, "plain", "utf-8"))
    msg.attach(MIMEText(compile_mjml_to_html(email.mjml), "html", "utf-8"))
    return msg


def send_via_smtp(settings: dict, to: str, email: RelayEmail) -> None:
    """Blocking SMTP send; raises on any transport or auth failure"""
    host = settings["host"]
    port = settings["port"]

    if host == GMAIL_HOST:
        port = 465

    msg = build_message(settings, to, email)
    context = ssl.create_default_context()

    implicit_tls = settings["secure"] or port == 465
    if implicit_tls:
        server = smtplib.SMTP_SSL(host, port, context=context, timeout=SMTP_TIMEOUT_SECONDS)
    else:
        server = smtplib.SMTP(host, port, timeout=SMTP_TIMEOUT_SECONDS)

    try:
        if not implicit_tls:
            server.starttls(context=context)
        server.login(settings["user"], settings["password"])
        server.sendmail(settings["from_address"], [to], msg.as_string())
        server.quit()
    finally:
        # No-op after quit; releases the socket when a step above failed
        server.close()

    logger.info(f"✅ Relay email sent via {host}")


async def relay_notify(
    to: str,
    email: RelayEmail,
    on_failure: NotifyFailure = NotifyFailure.WARN,
) -> Optional[str]:
    """
    Send one relay email.

    Args:
        to: Recipient address (never exposed to the other party)
        email: Rendered template
        on_failure: WARN returns a reason string, FAIL raises

    Returns:
        None when sent, otherwise "not_configured" or "failed" under WARN

    Raises:
        RelayNotConfiguredError: relay missing under FAIL
        RelayDeliveryError: send failed under FAIL
    """
    settings = get_smtp_settings()
    if not is_relay_configured(settings):
        logger.warning("⚠️ SMTP relay is not configured - skipping relay email")
        if on_failure == NotifyFailure.FAIL:
            raise RelayNotConfiguredError("SMTP relay is not configured.")
        return "not_configured"

    try:
        logger.info(f"📧 Sending relay email: {email.subject}")
        await run_in_threadpool(send_via_smtp, settings, to, email)
        return None
    except Exception as e:
        logger.error(f"❌ Relay email send failed: {e}")
        if on_failure == NotifyFailure.FAIL:
            raise RelayDeliveryError(str(e)) from e
        return "failed"


async def send_post_live_email(to: str, topic: str, expires_at: str, manage_url: str) -> Optional[str]:
    """Send the manage link to a new poster"""
    return await relay_notify(to, post_live_template(topic, expires_at, manage_url))


async def send_new_response_email(
    to: str,
    category: str,
    topic: str,
    message: str,
    manage_url: str,
    responder_time_zone: str = "",
    responder_availability: str = "",
) -> Optional[str]:
    email = new_response_template(
        category=category,
        topic=topic,
        message=message,
        manage_url=manage_url,
        responder_time_zone=responder_time_zone,
        responder_availability=responder_availability,
    )
    return await relay_notify(to, email)


async def send_owner_reply_email(to: str, category: str, topic: str, message: str) -> None:
    """Relay the poster's reply. A reply is only stored once this succeeds."""
    await relay_notify(to, owner_reply_template(category, topic, message), on_failure=NotifyFailure.FAIL)
