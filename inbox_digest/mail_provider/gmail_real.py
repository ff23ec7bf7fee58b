"""Gmail REST API mail provider (async, httpx)."""

from typing import Any, Optional

import httpx

from inbox_digest.config import GMAIL_API_BASE_URL, HTTP_TIMEOUT_SECONDS
from inbox_digest.errors import MailAuthError, MailProviderError, MailRateLimitError
from inbox_digest.mail_provider.protocol import MessageListPage
from inbox_digest.utils.logger import get_logger

logger = get_logger("inbox_digest.gmail_provider")


def _raise_for_status(response: httpx.Response, operation: str) -> None:
    status = response.status_code
    if status < 400:
        return
    detail = response.text[:300]
    if status in (401, 403):
        raise MailAuthError(f"{operation}: access token rejected ({status}): {detail}", status_code=status)
    if status == 429:
        raise MailRateLimitError(f"{operation}: rate limited: {detail}", status_code=status)
    raise MailProviderError(f"{operation}: HTTP {status}: {detail}", status_code=status)


def _json_body(response: httpx.Response, operation: str) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as e:
        raise MailProviderError(
            f"{operation}: undecodable body: {response.text[:300]}", status_code=response.status_code
        ) from e
    if not isinstance(data, dict):
        raise MailProviderError(
            f"{operation}: expected a JSON object, got {type(data).__name__}", status_code=response.status_code
        )
    return data


class GmailProvider:
    """Reads the signed-in user's mailbox via ``/users/me/messages``.

    The access token is passed per call since one provider instance serves every
    account. Use as an async context manager, or call :meth:`aclose`, to release
    the connection pool.
    """

    def __init__(
        self,
        base_url: str = GMAIL_API_BASE_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        logger.info("gmail_provider.init", base_url=self._base_url)

    async def __aenter__(self) -> "GmailProvider":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def _get(self, path: str, access_token: str, params: dict[str, Any], operation: str) -> httpx.Response:
        try:
            return await self._http.get(
                f"{self._base_url}{path}",
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            raise MailProviderError(f"{operation}: {type(e).__name__}: {e}") from e

    async def list_messages(
        self,
        access_token: str,
        query: str,
        page_token: Optional[str] = None,
        max_results: int = 100,
    ) -> MessageListPage:
        params: dict[str, Any] = {"q": query, "maxResults": max_results}
        if page_token:
            params["pageToken"] = page_token
        response = await self._get("/messages", access_token, params, "list_messages")
        _raise_for_status(response, "list_messages")
        data = _json_body(response, "list_messages")
        page = MessageListPage(
            ids=[m["id"] for m in data.get("messages", []) if m.get("id")],
            next_page_token=data.get("nextPageToken") or None,
        )
        logger.debug(
            "gmail_provider.list_messages",
            count=len(page.ids),
            has_next=page.next_page_token is not None,
        )
        return page

    async def get_message(self, access_token: str, message_id: str) -> Optional[dict[str, Any]]:
        response = await self._get(
            f"/messages/{message_id}", access_token, {"format": "full"}, "get_message"
        )
        if response.status_code == 404:
            logger.debug("gmail_provider.get_message.not_found", message_id=message_id)
            return None
        _raise_for_status(response, "get_message")
        return _json_body(response, "get_message")
