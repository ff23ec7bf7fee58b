"""Digest notifications: formatting, channel primitives and dispatch policy."""

from inbox_digest.notifications.channels import (
    ConsoleChannel,
    NotificationChannel,
    SendReceipt,
    SmtpEmailChannel,
    TwilioWhatsAppChannel,
)
from inbox_digest.notifications.dispatcher import NotificationDispatcher
from inbox_digest.notifications.formatting import email_subject, format_digest_message

__all__ = [
    "ConsoleChannel",
    "NotificationChannel",
    "NotificationDispatcher",
    "SendReceipt",
    "SmtpEmailChannel",
    "TwilioWhatsAppChannel",
    "email_subject",
    "format_digest_message",
]
