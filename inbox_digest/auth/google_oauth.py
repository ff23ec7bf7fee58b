"""Google OAuth token endpoint client (refresh and authorization-code exchange)."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from inbox_digest.config import (
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_TOKEN_URL,
    HTTP_TIMEOUT_SECONDS,
)
from inbox_digest.errors import CredentialError, TokenRevokedError
from inbox_digest.models.account import TokenGrant
from inbox_digest.utils.logger import get_logger

logger = get_logger("inbox_digest.auth.google")

# Google reports this when the refresh token was revoked or has expired
_REVOKED_ERROR = "invalid_grant"


class GoogleTokenClient:
    """POSTs to the OAuth token endpoint. Pass ``http_client`` to share a connection pool (or mock it in tests)."""

    def __init__(
        self,
        client_id: str = GOOGLE_CLIENT_ID,
        client_secret: str = GOOGLE_CLIENT_SECRET,
        token_url: str = GOOGLE_TOKEN_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._http = http_client
        self._timeout = timeout

    async def refresh(self, refresh_token: str) -> TokenGrant:
        grant = await self._post(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            }
        )
        logger.info("google_oauth.refreshed", expires_at=grant.expires_at.isoformat())
        return grant

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenGrant:
        """Exchange an authorization code from the consent screen for tokens."""
        grant = await self._post(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            }
        )
        logger.info("google_oauth.code_exchanged", has_refresh_token=bool(grant.refresh_token))
        return grant

    async def _post(self, data: dict[str, str]) -> TokenGrant:
        try:
            if self._http is not None:
                response = await self._http.post(self._token_url, data=data)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._token_url, data=data)
        except httpx.HTTPError as e:
            raise CredentialError(f"Token endpoint unreachable: {e}") from e

        payload = _json_or_empty(response)
        if response.status_code != 200:
            error = payload.get("error", "")
            description = payload.get("error_description", response.text[:200])
            if error == _REVOKED_ERROR:
                raise TokenRevokedError(f"Refresh token rejected: {description}")
            raise CredentialError(f"Token endpoint returned {response.status_code}: {error or description}")

        access_token = payload.get("access_token")
        if not access_token:
            raise CredentialError("Token endpoint response has no access_token")
        expires_in = int(payload.get("expires_in", 3600))
        return TokenGrant(
            access_token=access_token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            refresh_token=payload.get("refresh_token"),
        )


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}
