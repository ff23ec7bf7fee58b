"""Paginated, batched message retrieval for one account over a date window."""

import asyncio
from datetime import date
from typing import Any, Optional

from inbox_digest.config import (
    FETCH_BATCH_SIZE,
    FETCH_MAX_CONCURRENCY,
    FETCH_MAX_PAGES,
    FETCH_MAX_RESULTS,
    FETCH_PAGE_SIZE,
    PREVIEW_CHARS,
)
from inbox_digest.errors import FetchError, MailProviderError
from inbox_digest.mail_provider.parsing import parse_message
from inbox_digest.mail_provider.protocol import MailProvider
from inbox_digest.models.email import FetchResult, FetchStats, Message
from inbox_digest.models.window import DateWindow
from inbox_digest.utils.logger import get_logger

logger = get_logger("inbox_digest.fetcher")


class MessageFetcher:
    """List phase runs page by page; detail phase runs batch by batch with a concurrency bound.

    ``max_concurrency`` is the number of detail requests allowed in flight at once
    and is the only rate-limiting knob.
    """

    def __init__(
        self,
        provider: MailProvider,
        page_size: int = FETCH_PAGE_SIZE,
        max_pages: int = FETCH_MAX_PAGES,
        max_results: int = FETCH_MAX_RESULTS,
        batch_size: int = FETCH_BATCH_SIZE,
        max_concurrency: int = FETCH_MAX_CONCURRENCY,
        preview_chars: int = PREVIEW_CHARS,
    ):
        if batch_size < 1 or max_concurrency < 1 or page_size < 1:
            raise ValueError("batch_size, max_concurrency and page_size must be >= 1")
        self._provider = provider
        self._page_size = page_size
        self._max_pages = max_pages
        self._max_results = max_results
        self._batch_size = batch_size
        self._max_concurrency = max_concurrency
        self._preview_chars = preview_chars

    async def fetch_messages(
        self,
        access_token: str,
        window: DateWindow,
        max_results: Optional[int] = None,
        today: Optional[date] = None,
    ) -> FetchResult:
        today = today or date.today()
        limit = max_results if max_results is not None else self._max_results
        query = window.to_query(today)
        log = logger.bind(query=query, limit=limit)

        ids = await self._list_ids(access_token, query, limit)
        log.info("fetcher.listed", count=len(ids))
        if not ids:
            return FetchResult(messages=[], stats=FetchStats())

        messages = await self._fetch_details(access_token, ids)
        in_window = [m for m in messages if window.contains(m.received_at)]
        if len(in_window) != len(messages):
            log.debug("fetcher.outside_window_dropped", dropped=len(messages) - len(in_window))

        stats = FetchStats.from_messages(in_window)
        log.info(
            "fetcher.complete",
            listed=len(ids),
            fetched=len(in_window),
            with_text=stats.with_text_content,
            with_html=stats.with_html_content,
            avg_content_length=stats.avg_content_length,
        )
        return FetchResult(messages=in_window, stats=stats)

    async def _list_ids(self, access_token: str, query: str, limit: int) -> list[str]:
        ids: list[str] = []
        seen: set[str] = set()
        page_token: Optional[str] = None
        pages = 0
        while len(ids) < limit and pages < self._max_pages:
            try:
                page = await self._provider.list_messages(
                    access_token,
                    query,
                    page_token=page_token,
                    max_results=min(self._page_size, limit - len(ids)),
                )
            except MailProviderError as e:
                logger.error("fetcher.list_failed", page=pages + 1, error=str(e))
                raise FetchError(f"Listing messages failed on page {pages + 1}: {e}") from e
            pages += 1
            for message_id in page.ids:
                if message_id not in seen:
                    seen.add(message_id)
                    ids.append(message_id)
            logger.debug("fetcher.list.page", page=pages, page_count=len(page.ids), total=len(ids))
            page_token = page.next_page_token
            if not page_token:
                break
        if page_token and pages >= self._max_pages:
            logger.warning("fetcher.page_cap_reached", max_pages=self._max_pages, total=len(ids))
        return ids[:limit]

    async def _fetch_details(self, access_token: str, ids: list[str]) -> list[Message]:
        semaphore = asyncio.Semaphore(self._max_concurrency)
        messages: list[Message] = []
        for start in range(0, len(ids), self._batch_size):
            batch = ids[start : start + self._batch_size]
            results = await asyncio.gather(
                *(self._fetch_one(access_token, message_id, semaphore) for message_id in batch)
            )
            fetched = [m for m in results if m is not None]
            messages.extend(fetched)
            logger.debug(
                "fetcher.batch",
                batch=start // self._batch_size + 1,
                requested=len(batch),
                fetched=len(fetched),
            )
        return messages

    async def _fetch_one(
        self,
        access_token: str,
        message_id: str,
        semaphore: asyncio.Semaphore,
    ) -> Optional[Message]:
        """Fetch and parse one message; failures drop the message instead of failing the batch."""
        async with semaphore:
            try:
                raw: Optional[dict[str, Any]] = await self._provider.get_message(access_token, message_id)
            except MailProviderError as e:
                logger.warning("fetcher.detail_failed", message_id=message_id, error=str(e))
                return None
        if raw is None:
            logger.warning("fetcher.detail_not_found", message_id=message_id)
            return None
        try:
            return parse_message(raw, preview_chars=self._preview_chars)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("fetcher.parse_failed", message_id=message_id, error=str(e))
            return None
