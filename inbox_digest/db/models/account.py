"""ORM models for connected accounts and user notification settings."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inbox_digest.db.base import Base, TimestampMixin


class AccountRecord(Base, TimestampMixin):
    """One connected mailbox per (user_id, email)."""

    __tablename__ = "accounts"
    __table_args__ = (UniqueConstraint("user_id", "email", name="uq_accounts_user_email"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(512), nullable=False)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", index=True)


class UserSettingsRecord(Base, TimestampMixin):
    """Notification preferences, one row per user."""

    __tablename__ = "user_settings"

    user_id: Mapped[str] = mapped_column(String(256), primary_key=True)
    receive_by_email: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    receive_by_whatsapp: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    whatsapp_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
