"""Mock mail provider: serves Gmail-shaped messages from a JSON file or an in-memory list."""

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from inbox_digest.mail_provider.protocol import MessageListPage
from inbox_digest.utils.logger import get_logger

logger = get_logger("inbox_digest.mail_provider")

_QUERY_DATE = re.compile(r"\b(after|before):(\d{4})/(\d{1,2})/(\d{1,2})\b")


def _query_bounds(query: str) -> tuple[Optional[datetime], Optional[datetime]]:
    after = before = None
    for op, y, m, d in _QUERY_DATE.findall(query or ""):
        bound = datetime(int(y), int(m), int(d), tzinfo=timezone.utc)
        if op == "after":
            after = bound
        else:
            before = bound
    return after, before


def _internal_date(message: dict[str, Any]) -> Optional[datetime]:
    raw = message.get("internalDate")
    if not raw:
        return None
    return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)


class MockMailProvider:
    """Inbox from a JSON file (list, or object with ``messages``). The access token is ignored.

    Page tokens are string offsets into the filtered listing.
    """

    def __init__(
        self,
        inbox_path: Optional[Path] = None,
        messages: Optional[list[dict[str, Any]]] = None,
    ):
        self._inbox_path = inbox_path
        self._messages: list[dict[str, Any]] = list(messages or [])
        if inbox_path is not None:
            self._load_inbox()
        logger.info(
            "mail_provider.init",
            inbox_path=str(inbox_path) if inbox_path else None,
            message_count=len(self._messages),
        )

    def _load_inbox(self) -> None:
        if not self._inbox_path.exists():
            logger.warning("mail_provider.inbox_missing", inbox_path=str(self._inbox_path))
            return
        with self._inbox_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        items = data if isinstance(data, list) else data.get("messages", [])
        loaded = [item for item in items if isinstance(item, dict) and item.get("id")]
        skipped = len(items) - len(loaded)
        if skipped:
            logger.warning("mail_provider.inbox_skipped_items", skipped=skipped)
        self._messages.extend(loaded)
        logger.info("mail_provider.inbox_loaded", message_count=len(loaded))

    def _matching(self, query: str) -> list[dict[str, Any]]:
        after, before = _query_bounds(query)
        matched = []
        for m in self._messages:
            received = _internal_date(m)
            if received is not None:
                if after is not None and received < after:
                    continue
                if before is not None and received >= before:
                    continue
            matched.append(m)
        return matched

    async def list_messages(
        self,
        access_token: str,
        query: str,
        page_token: Optional[str] = None,
        max_results: int = 100,
    ) -> MessageListPage:
        matched = self._matching(query)
        start = int(page_token) if page_token else 0
        end = start + max_results
        page = MessageListPage(
            ids=[m["id"] for m in matched[start:end]],
            next_page_token=str(end) if end < len(matched) else None,
        )
        logger.debug("mail_provider.list_messages", query=query, start=start, count=len(page.ids))
        return page

    async def get_message(self, access_token: str, message_id: str) -> Optional[dict[str, Any]]:
        for m in self._messages:
            if m["id"] == message_id:
                logger.debug("mail_provider.get_message.hit", message_id=message_id)
                return m
        logger.debug("mail_provider.get_message.miss", message_id=message_id)
        return None
