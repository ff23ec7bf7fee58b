"""Digest content schema and persisted digest model."""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

InboxStatus = Literal["attention_needed", "worth_a_look", "all_clear"]
DeliveryStatus = Literal["sent", "failed", "pending"]


class ImportantItem(BaseModel):
    subject: str
    sender: str
    reason: str


class DigestContent(BaseModel):
    """Structured model output. Over-length lists are rejected, never truncated."""

    model_config = ConfigDict(extra="ignore")

    overview: list[str] = Field(min_length=3, max_length=5)
    insight: str = Field(min_length=1, max_length=500)
    important_emails: list[ImportantItem] = Field(default_factory=list, max_length=5)
    inbox_status: InboxStatus
    suggestions: list[str] = Field(default_factory=list, max_length=3)


# Nothing to summarize: fixed content, no model call. The single-line overview is
# below the schema minimum, so it is constructed without validation.
EMPTY_INBOX_CONTENT = DigestContent.model_construct(
    overview=["No emails received today"],
    insight="Your inbox is completely clear today.",
    important_emails=[],
    inbox_status="all_clear",
    suggestions=["Great job staying on top of your emails!"],
)


class Digest(BaseModel):
    """A persisted digest for one (account, date, revision)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    account_id: int
    date_processed: date
    revision: int = 0
    overview: list[str]
    insight: str
    important_items: list[ImportantItem] = Field(default_factory=list)
    status: InboxStatus
    suggestions: list[str] = Field(default_factory=list)
    email_count: int = 0
    created_at: Optional[datetime] = None
    sent_via: Optional[str] = None
    delivery_status: Optional[DeliveryStatus] = None
    sent_at: Optional[datetime] = None
