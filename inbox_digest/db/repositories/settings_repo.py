"""User notification settings repository."""

from typing import Optional

from inbox_digest.db import get_session
from inbox_digest.db.models.account import UserSettingsRecord
from inbox_digest.db.repositories import wraps_db_errors
from inbox_digest.models.account import UserNotificationSettings

_UNSET = object()


@wraps_db_errors("get_settings")
def get_settings(user_id: str) -> Optional[UserNotificationSettings]:
    with get_session() as session:
        row = session.get(UserSettingsRecord, user_id)
        return UserNotificationSettings.model_validate(row) if row else None


@wraps_db_errors("upsert_settings")
def upsert_settings(
    user_id: str,
    receive_by_email=_UNSET,
    receive_by_whatsapp=_UNSET,
    email=_UNSET,
    whatsapp_number=_UNSET,
) -> UserNotificationSettings:
    """Create settings with defaults (email on, WhatsApp off) or update only the given fields."""
    with get_session() as session:
        row = session.get(UserSettingsRecord, user_id)
        if row is None:
            row = UserSettingsRecord(user_id=user_id, receive_by_email=True, receive_by_whatsapp=False)
            session.add(row)
        updates = {
            "receive_by_email": receive_by_email,
            "receive_by_whatsapp": receive_by_whatsapp,
            "email": email,
            "whatsapp_number": whatsapp_number,
        }
        for field, value in updates.items():
            if value is not _UNSET:
                setattr(row, field, value)
        session.flush()
        session.refresh(row)
        return UserNotificationSettings.model_validate(row)
