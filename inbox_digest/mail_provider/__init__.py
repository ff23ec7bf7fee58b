"""Mail provider: Gmail-style interface, real Gmail client and mock implementation."""

from inbox_digest.mail_provider.gmail_real import GmailProvider
from inbox_digest.mail_provider.mock import MockMailProvider
from inbox_digest.mail_provider.parsing import parse_message
from inbox_digest.mail_provider.protocol import MailProvider, MessageListPage

__all__ = [
    "GmailProvider",
    "MailProvider",
    "MessageListPage",
    "MockMailProvider",
    "parse_message",
]
