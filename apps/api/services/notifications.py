"""SKU-ready email notifications."""

from __future__ import annotations

import asyncio
import html
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import Settings
from models.notification_preference import NotificationPreference
from services.errors import NotificationError

logger = logging.getLogger(__name__)


@dataclass
class SkuReadyMessage:
    to: str
    product_name: str
    sku_code: str
    qr_code_url: str
    qr_target_url: str


async def wants_sku_ready_email(user_id: Optional[str], db: AsyncSession) -> bool:
    """Read the user's 'qr_ready' flag. Missing preference rows default to True."""
    if not user_id:
        return False
    result = await db.execute(
        select(NotificationPreference.qr_ready).where(NotificationPreference.user_id == user_id)
    )
    flag = result.scalar_one_or_none()
    return True if flag is None else bool(flag)


def render_sku_ready_email(message: SkuReadyMessage, config: Settings) -> MIMEMultipart:
    product = html.escape(message.product_name)
    code = html.escape(message.sku_code)
    target = html.escape(message.qr_target_url)
    qr_image = html.escape(message.qr_code_url)
    portal_url = f"{config.FRONTEND_URL.rstrip('/')}/portal"

    text_body = (
        f"Your QR code for {message.product_name} is ready.\n\n"
        f"SKU: {message.sku_code}\n"
        f"Consumer URL: {message.qr_target_url}\n"
        f"QR image: {message.qr_code_url}\n\n"
        f"Download it from the portal: {portal_url}\n"
    )
    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 520px; margin: 0 auto;">
      <h2>{product}</h2>
      <p>Your QR code has been generated and is ready to add to your packaging.</p>
      <p><strong>SKU</strong><br/><code>{code}</code></p>
      <p><strong>Consumer URL</strong><br/><code>{target}</code></p>
      <p><strong>QR image</strong><br/><code>{qr_image}</code></p>
      <p><a href="{html.escape(portal_url)}">Download QR Code</a></p>
    </div>
    """

    msg = MIMEMultipart("alternative")
    msg["From"] = f"{config.EMAIL_FROM_NAME} <{config.EMAIL_FROM}>"
    msg["To"] = message.to
    msg["Subject"] = f"Your QR code is ready: {message.product_name}"
    msg.attach(MIMEText(text_body, "plain"))
    msg.attach(MIMEText(html_body, "html"))
    return msg


def send_sku_ready_email(message: SkuReadyMessage, config: Settings) -> bool:
    """Send the ready email. Returns False when SMTP is not configured."""
    if not config.SMTP_HOST:
        logger.warning("SMTP settings not configured. Skipping SKU ready email to %s", message.to)
        return False

    msg = render_sku_ready_email(message, config)
    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=30) as smtp:
            smtp.starttls()
            if config.SMTP_USER:
                smtp.login(config.SMTP_USER, config.SMTP_PASSWORD)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise NotificationError(f"Failed to send SKU ready email: {exc}") from exc

    logger.info("SKU ready email sent to %s for %s", message.to, message.sku_code)
    return True


async def deliver_sku_ready_email(message: SkuReadyMessage, config: Settings) -> bool:
    return await asyncio.to_thread(send_sku_ready_email, message, config)
