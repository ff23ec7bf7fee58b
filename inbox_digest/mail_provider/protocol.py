"""Mail provider protocol (Gmail-style list + get)."""

from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field


class MessageListPage(BaseModel):
    """One page of message ids from a listing call."""

    ids: list[str] = Field(default_factory=list)
    next_page_token: Optional[str] = None


class MailProvider(Protocol):
    """Abstract interface for listing and reading messages of one mailbox."""

    async def list_messages(
        self,
        access_token: str,
        query: str,
        page_token: Optional[str] = None,
        max_results: int = 100,
    ) -> MessageListPage:
        """List message ids matching a search query. Raises MailProviderError on failure."""
        ...

    async def get_message(self, access_token: str, message_id: str) -> Optional[dict[str, Any]]:
        """Full message payload (Gmail ``format=full`` shape), or None when the message does not exist."""
        ...
