"""
Relay email templates
Each template returns the subject, a plain-text body and an MJML document for the HTML part
"""

import html
from dataclasses import dataclass
from typing import Optional

from .shared.clock import parse_iso

SITE_NAME = "Chavrusashaft"
SUBJECT_PREFIX = f"[{SITE_NAME}]"

THEME = {
    "primary": "#1d4ed8",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}


@dataclass
class RelayEmail:
    subject: str
    text: str
    mjml: str


def _escape(value: Optional[str]) -> str:
    """Escape user text for the HTML part, keeping line breaks"""
    return html.escape(value or "", quote=True).replace("\n", "<br/>")


def _date_label(iso_value: str) -> str:
    moment = parse_iso(iso_value)
    return moment.strftime("%b %d, %Y") if moment else iso_value


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML wrapper shared by every relay email"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{html.escape(cta_url, quote=True)}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              Sent by the {SITE_NAME} relay. Email addresses are never shared between members.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def post_live_template(topic: str, expires_at: str, manage_url: str) -> RelayEmail:
    """Confirmation to the poster with the one-time manage link"""
    active_until = _date_label(expires_at)
    text = "\n".join(
        [
            f"Your learning request is now active on {SITE_NAME}.",
            "",
            f"Topic: {topic}",
            f"Active until: {active_until}",
            "",
            f"Manage link: {manage_url}",
        ]
    )

    content = f"""
    <mj-text>
      <strong>Topic:</strong> {_escape(topic)}<br/>
      <strong>Active until:</strong> {active_until}
    </mj-text>

    <mj-text color="{THEME['text_muted']}">
      Keep this email. The manage link is the only way to edit, renew or delete your post
      and to read responses.
    </mj-text>
    """

    return RelayEmail(
        subject=f"{SUBJECT_PREFIX} Your post is live",
        text=text,
        mjml=get_base_template(
            title="Your post is live",
            preview_text="Your learning request is now active",
            content_sections=content,
            cta_url=manage_url,
            cta_label="Manage your post",
        ),
    )


def new_response_template(
    category: str,
    topic: str,
    message: str,
    manage_url: str,
    responder_time_zone: str = "",
    responder_availability: str = "",
) -> RelayEmail:
    """Relay a respondent's message to the poster"""
    lines = [
        "You received a new response to your learning request.",
        "",
        f"Category: {category}",
        f"Topic: {topic}",
        "",
        "Message:",
        message,
        "",
    ]
    if responder_time_zone:
        lines.append(f"Responder time zone: {responder_time_zone}")
    if responder_availability:
        lines.append(f"Responder availability: {responder_availability}")
    lines += ["", f"Manage your post: {manage_url}"]
    # Collapse the blank lines left by missing optional fields
    text = "\n".join(line for line in lines if line)

    details = ""
    if responder_time_zone:
        details += f"<strong>Time zone:</strong> {_escape(responder_time_zone)}<br/>"
    if responder_availability:
        details += f"<strong>Availability:</strong> {_escape(responder_availability)}"

    content = f"""
    <mj-text>
      <strong>Category:</strong> {_escape(category)}<br/>
      <strong>Topic:</strong> {_escape(topic)}
    </mj-text>

    <mj-text padding="0 0 0 20px">
      {_escape(message)}
    </mj-text>
    """
    if details:
        content += f"""
    <mj-text color="{THEME['text_muted']}">
      {details}
    </mj-text>
    """

    return RelayEmail(
        subject=f"{SUBJECT_PREFIX} New response to: {topic}",
        text=text,
        mjml=get_base_template(
            title="New response to your request",
            preview_text=f"Someone responded to {_escape(topic)}",
            content_sections=content,
            cta_url=manage_url,
            cta_label="Reply through the relay",
        ),
    )


def owner_reply_template(category: str, topic: str, message: str) -> RelayEmail:
    """Relay the poster's reply to the respondent"""
    text = "\n".join(
        [
            "You received a reply from the post owner.",
            "",
            f"Category: {category}",
            f"Topic: {topic}",
            "",
            "Reply:",
            message,
            "",
            "If you want to share direct contact, include it in your next message.",
        ]
    )

    content = f"""
    <mj-text>
      <strong>Category:</strong> {_escape(category)}<br/>
      <strong>Topic:</strong> {_escape(topic)}
    </mj-text>

    <mj-text padding="0 0 0 20px">
      {_escape(message)}
    </mj-text>

    <mj-text color="{THEME['text_muted']}">
      If you want to share direct contact, include it in your next message.
    </mj-text>
    """

    return RelayEmail(
        subject=f"{SUBJECT_PREFIX} Reply about: {topic}",
        text=text,
        mjml=get_base_template(
            title="The post owner replied",
            preview_text=f"Reply about {_escape(topic)}",
            content_sections=content,
        ),
    )
