# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Email notification channel using async SMTP.

Sends multipart (plain text and HTML) messages with aiosmtplib, configured
from SMTPSettings (SMTP_* environment variables). An unconfigured channel
skips every send.
"""

import html
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid

import aiosmtplib

from coursereg.core.config.settings import SMTPSettings
from coursereg.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    NotificationPayload,
)


class EmailChannel(BaseChannel):
    """Email notification channel.

    Attributes:
        settings: SMTP server and sender configuration.
    """

    def __init__(self, settings: SMTPSettings) -> None:
        super().__init__()
        self.settings = settings

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.EMAIL

    async def send(self, payload: NotificationPayload) -> ChannelResult:
        """Send an email notification via SMTP.

        Args:
            payload: The notification payload.

        Returns:
            ChannelResult with delivery status.
        """
        if not self.settings.is_configured:
            self.logger.debug(
                "Email skipped (not configured): %s to %s",
                payload.notification_type,
                payload.recipient_email,
            )
            return self.create_skipped_result("Email channel not configured")

        if not payload.recipient_email:
            return self.create_skipped_result("No recipient email address")

        message = self.build_message(payload)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.settings.host,
                port=self.settings.port,
                username=self.settings.username or None,
                password=self.settings.password.get_secret_value() or None,
                use_tls=self.settings.use_tls,
                start_tls=self.settings.start_tls and not self.settings.use_tls,
                timeout=self.settings.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            self.logger.error(
                "Failed to send %s to %s: %s",
                payload.notification_type,
                payload.recipient_email,
                str(e),
                exc_info=True,
            )
            return self.create_failure_result(
                f"SMTP error: {e}",
                metadata={"recipient": payload.recipient_email},
            )

        self.logger.info("Email sent: %s to %s", payload.notification_type, payload.recipient_email)
        return self.create_success_result(
            message_id=message["Message-ID"],
            metadata={"recipient": payload.recipient_email},
        )

    def build_message(self, payload: NotificationPayload) -> MIMEMultipart:
        """Build the MIME message for a payload."""
        message = MIMEMultipart("alternative")
        message["From"] = formataddr((self.settings.from_name, self.settings.from_email))
        message["To"] = payload.recipient_email
        message["Subject"] = payload.title
        message["Message-ID"] = make_msgid()

        message.attach(MIMEText(self._build_plain_text(payload), "plain", "utf-8"))
        message.attach(MIMEText(self._build_html(payload), "html", "utf-8"))
        return message

    def _build_plain_text(self, payload: NotificationPayload) -> str:
        greeting = f"Hi {payload.recipient_name}," if payload.recipient_name else "Hi,"
        return "\n".join([
            payload.title,
            "=" * len(payload.title),
            "",
            greeting,
            "",
            payload.message,
            "",
            "---",
            f"This notification was sent by {self.settings.from_name}.",
        ])

    def _build_html(self, payload: NotificationPayload) -> str:
        title = html.escape(payload.title)
        name = html.escape(payload.recipient_name)
        body = html.escape(payload.message).replace("\n", "<br>")
        sender = html.escape(self.settings.from_name)
        return f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; color: #1F2937;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h1 style="color: #4F46E5; font-size: 22px;">{title}</h1>
        <p>Hi <strong>{name}</strong>,</p>
        <p>{body}</p>
        <p style="font-size: 12px; color: #9CA3AF;">This notification was sent by {sender}.</p>
    </div>
</body>
</html>
        """.strip()
