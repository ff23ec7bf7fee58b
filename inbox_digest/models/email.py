"""Retrieved message models and fetch statistics."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Message(BaseModel):
    """A single retrieved message. Never persisted; only its id reaches the ledger."""

    id: str
    thread_id: str = ""
    subject: str = ""
    sender: str = ""
    received_at: Optional[datetime] = None
    text_content: Optional[str] = None
    html_content: Optional[str] = None
    preview: str = ""
    snippet: str = ""
    labels: list[str] = Field(default_factory=list)


class FetchStats(BaseModel):
    """Content statistics for one fetch."""

    total_emails: int = 0
    with_text_content: int = 0
    with_html_content: int = 0
    avg_content_length: int = 0

    @classmethod
    def from_messages(cls, messages: list[Message]) -> "FetchStats":
        total = len(messages)
        if total == 0:
            return cls()
        return cls(
            total_emails=total,
            with_text_content=sum(1 for m in messages if m.text_content),
            with_html_content=sum(1 for m in messages if m.html_content),
            avg_content_length=round(sum(len(m.preview) for m in messages) / total),
        )


class FetchResult(BaseModel):
    messages: list[Message] = Field(default_factory=list)
    stats: FetchStats = Field(default_factory=FetchStats)
