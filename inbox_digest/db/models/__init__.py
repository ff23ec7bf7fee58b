"""ORM models."""

from inbox_digest.db.models.account import AccountRecord, UserSettingsRecord
from inbox_digest.db.models.digest import DigestRecord, NotificationRecord, ProcessedMessageRecord

__all__ = [
    "AccountRecord",
    "DigestRecord",
    "NotificationRecord",
    "ProcessedMessageRecord",
    "UserSettingsRecord",
]
