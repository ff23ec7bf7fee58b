"""Notification attempt log."""

from typing import Optional

from sqlalchemy import select

from inbox_digest.db import get_session
from inbox_digest.db.models.digest import NotificationRecord
from inbox_digest.db.repositories import wraps_db_errors


@wraps_db_errors("record_notification")
def record_notification(
    digest_id: int,
    user_id: str,
    channel: str,
    delivery_status: str,
    destination: Optional[str] = None,
    external_id: Optional[str] = None,
    detail: Optional[str] = None,
) -> NotificationRecord:
    with get_session() as session:
        row = NotificationRecord(
            digest_id=digest_id,
            user_id=user_id,
            channel=channel,
            destination=destination,
            delivery_status=delivery_status,
            external_id=external_id,
            detail=detail,
        )
        session.add(row)
        session.flush()
        session.refresh(row)
        session.expunge(row)
        return row


@wraps_db_errors("list_for_digest")
def list_for_digest(digest_id: int) -> list[NotificationRecord]:
    with get_session() as session:
        rows = list(
            session.scalars(
                select(NotificationRecord)
                .where(NotificationRecord.digest_id == digest_id)
                .order_by(NotificationRecord.id)
            ).all()
        )
        for row in rows:
            session.expunge(row)
        return rows
