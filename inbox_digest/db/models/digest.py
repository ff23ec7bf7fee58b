"""ORM models for digests, the processed-message ledger and notification attempts."""

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import JSON, Date, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inbox_digest.db.base import Base, utcnow


class ProcessedMessageRecord(Base):
    """A message id that has already contributed to a digest for this account."""

    __tablename__ = "processed_messages"
    __table_args__ = (
        UniqueConstraint("message_id", "account_id", name="uq_processed_message_account"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    message_id: Mapped[str] = mapped_column(String(512), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    processed_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


class DigestRecord(Base):
    """One digest per (account, date, revision). Content columns are never updated."""

    __tablename__ = "digests"
    __table_args__ = (
        UniqueConstraint("account_id", "date_processed", "revision", name="uq_digest_account_date_revision"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    date_processed: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    overview: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    insight: Mapped[str] = mapped_column(Text, nullable=False)
    important_items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    suggestions: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    email_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    sent_via: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    delivery_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)


class NotificationRecord(Base):
    """One delivery attempt of a digest through a channel."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    digest_id: Mapped[int] = mapped_column(ForeignKey("digests.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    channel: Mapped[str] = mapped_column(String(16), nullable=False)
    destination: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    delivery_status: Mapped[str] = mapped_column(String(16), nullable=False)
    external_id: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    detail: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
