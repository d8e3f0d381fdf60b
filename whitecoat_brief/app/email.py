"""Outbound brief email with the PDF attached."""

import asyncio
import html
import logging
import re
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

import httpx

from ..config.settings import settings
from ..exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


def brief_subject(brand_name: str) -> str:
    return f"Your {settings.brief_title} for {brand_name} is Ready"


def attachment_filename(brand_name: str) -> str:
    """e.g. "WhiteCoat-Brief-Acme-Skin.pdf"."""
    title = re.sub(r"\s+", "-", settings.brief_title.strip())
    brand = re.sub(r"\s+", "-", brand_name.strip())
    return f"{title}-{brand}.pdf"


def build_email_html(founder_name: str, brand_name: str) -> str:
    first_name = html.escape((founder_name.split() or [""])[0])
    brand = html.escape(brand_name)
    title = html.escape(settings.brief_title)
    return f"""\
<div style="font-family: 'Inter', Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 40px 20px;">
  <div style="margin-bottom: 30px;">
    <span style="font-family: 'JetBrains Mono', monospace; color: #059669; font-size: 12px; font-weight: bold; letter-spacing: 2px;">{title.upper()}</span>
  </div>
  <h1 style="font-size: 24px; color: #0F172A; margin-bottom: 20px;">Hi {first_name},</h1>
  <p style="font-size: 16px; color: #475569; line-height: 1.6; margin-bottom: 20px;">
    Your {title} for <strong>{brand}</strong> is attached!
  </p>
  <p style="font-size: 16px; color: #475569; line-height: 1.6; margin-bottom: 20px;">
    This document contains your personalized marketing playbook, including:
  </p>
  <ul style="font-size: 16px; color: #475569; line-height: 1.8; margin-bottom: 30px; padding-left: 20px;">
    <li>Competitive landscape analysis</li>
    <li>Strategic positioning recommendations</li>
    <li>Creative concepts and ad hooks</li>
    <li>A 4-week testing roadmap</li>
  </ul>
  <p style="font-size: 16px; color: #475569; line-height: 1.6; margin-bottom: 30px;">
    Questions? Just reply to this email. We'd love to hear from you.
  </p>
  <p style="font-size: 16px; color: #0F172A; line-height: 1.6;">
    Best,<br>
    <strong>The {title} Team</strong>
  </p>
</div>"""


def build_brief_message(
    to: str,
    founder_name: str,
    brand_name: str,
    pdf_bytes: bytes,
) -> MIMEMultipart:
    msg = MIMEMultipart("mixed")
    msg["From"] = formataddr((settings.email_from_name, settings.smtp_email))
    msg["To"] = to
    msg["Subject"] = brief_subject(brand_name)
    msg.attach(MIMEText(build_email_html(founder_name, brand_name), "html"))

    attachment = MIMEApplication(pdf_bytes, _subtype="pdf")
    attachment.add_header("Content-Disposition", "attachment", filename=attachment_filename(brand_name))
    msg.attach(attachment)
    return msg


def _send_smtp(msg: MIMEMultipart, to: str) -> None:
    with smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port) as server:
        server.login(settings.smtp_email, settings.smtp_password)
        server.sendmail(settings.smtp_email, to, msg.as_string())


async def send_brief_email(
    to: str,
    founder_name: str,
    brand_name: str,
    pdf_url: str,
) -> None:
    """Download the PDF and email it to the client.

    Raises:
        EmailDeliveryError: SMTP not configured, PDF unavailable, or send failed
    """
    if not settings.smtp_email or not settings.smtp_password:
        raise EmailDeliveryError("SMTP not configured (SMTP_EMAIL / SMTP_PASSWORD)")

    try:
        async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
            resp = await client.get(pdf_url)
            resp.raise_for_status()
    except httpx.HTTPError as e:
        raise EmailDeliveryError(f"Could not download PDF: {e}") from e

    msg = build_brief_message(to, founder_name, brand_name, resp.content)

    try:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, _send_smtp, msg, to)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send brief email to %s: %s", to, e)
        raise EmailDeliveryError(f"Failed to send email: {e}") from e

    logger.info("Brief email sent to %s for %s", to, brand_name)
