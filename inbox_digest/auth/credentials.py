"""Per-account OAuth credential lifecycle: expiry check, refresh, persistence.

This is the only module that writes token fields. States:

    Valid --(expired)--> Refreshing --(ok)--> Valid
                                    \\--(fail)--> Unrefreshable (None returned)

Only a revoked refresh token moves the account to ``expired``; other refresh
failures are logged and leave the stored status alone so the next run retries.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from inbox_digest.config import TOKEN_EXPIRY_BUFFER_SECONDS
from inbox_digest.db.repositories import account_repo
from inbox_digest.errors import CredentialError, DigestError, TokenRevokedError
from inbox_digest.models.account import Account, TokenGrant
from inbox_digest.utils.logger import get_logger

logger = get_logger("inbox_digest.auth.credentials")


class TokenRefresher(Protocol):
    async def refresh(self, refresh_token: str) -> TokenGrant:
        ...


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they were written as UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class CredentialManager:
    def __init__(
        self,
        token_client: TokenRefresher,
        expiry_buffer_seconds: int = TOKEN_EXPIRY_BUFFER_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._token_client = token_client
        self._buffer = timedelta(seconds=expiry_buffer_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def is_token_expired(self, account: Account, now: Optional[datetime] = None) -> bool:
        """True when ``now > expires_at - buffer``. A missing expiry counts as expired."""
        if account.expires_at is None:
            return True
        now = _as_utc(now or self._clock())
        return now > _as_utc(account.expires_at) - self._buffer

    async def get_valid_credentials(self, account: Account) -> Optional[Account]:
        """Return the account with a usable access token, refreshing first if needed; None if unrefreshable."""
        if not self.is_token_expired(account):
            return account

        log = logger.bind(account_id=account.id, account_email=account.email)
        if not account.refresh_token:
            log.warning("credentials.no_refresh_token")
            return None

        log.info("credentials.refreshing", expires_at=str(account.expires_at))
        try:
            grant = await self._token_client.refresh(account.refresh_token)
        except TokenRevokedError as e:
            log.warning("credentials.revoked", error=str(e))
            account_repo.set_status(account.id, "expired")
            return None
        except CredentialError as e:
            log.error("credentials.refresh_failed", error=str(e))
            return None

        try:
            updated = account_repo.update_tokens(
                account.id,
                access_token=grant.access_token,
                expires_at=grant.expires_at,
                refresh_token=grant.refresh_token,
            )
        except DigestError as e:
            log.error("credentials.persist_failed", error=str(e))
            return None
        if updated is None:
            log.warning("credentials.account_vanished")
            return None
        log.info("credentials.refreshed", expires_at=grant.expires_at.isoformat())
        return updated

    def connect_account(self, user_id: str, email: str, grant: TokenGrant) -> Account:
        """Store tokens from a fresh OAuth exchange (upsert on user and email)."""
        account = account_repo.upsert_account(
            user_id=user_id,
            email=email,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=grant.expires_at,
        )
        logger.info("credentials.account_connected", account_id=account.id, user_id=user_id)
        return account
