"""Account repository: upsert on OAuth exchange, lookups, token and status updates."""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select

from inbox_digest.db import get_session
from inbox_digest.db.models.account import AccountRecord
from inbox_digest.db.repositories import wraps_db_errors
from inbox_digest.models.account import Account, AccountStatus


@wraps_db_errors("upsert_account")
def upsert_account(
    user_id: str,
    email: str,
    access_token: str,
    refresh_token: Optional[str],
    expires_at: Optional[datetime],
) -> Account:
    """Insert or update the account keyed by (user_id, email). Reconnecting reactivates it."""
    with get_session() as session:
        row = session.scalars(
            select(AccountRecord)
            .where(AccountRecord.user_id == user_id)
            .where(AccountRecord.email == email)
        ).first()
        if row is None:
            row = AccountRecord(user_id=user_id, email=email, access_token=access_token)
            session.add(row)
        row.access_token = access_token
        # Google only returns a refresh token on first consent; keep the stored one otherwise
        if refresh_token:
            row.refresh_token = refresh_token
        row.expires_at = expires_at
        row.status = "active"
        session.flush()
        session.refresh(row)
        return Account.model_validate(row)


@wraps_db_errors("get_account")
def get_account(account_id: int, user_id: Optional[str] = None) -> Optional[Account]:
    """Return the account, scoped to ``user_id`` when given."""
    with get_session() as session:
        q = select(AccountRecord).where(AccountRecord.id == account_id)
        if user_id is not None:
            q = q.where(AccountRecord.user_id == user_id)
        row = session.scalars(q).first()
        return Account.model_validate(row) if row else None


@wraps_db_errors("list_accounts")
def list_accounts(user_id: str) -> list[Account]:
    with get_session() as session:
        rows = session.scalars(
            select(AccountRecord).where(AccountRecord.user_id == user_id).order_by(AccountRecord.id)
        ).all()
        return [Account.model_validate(r) for r in rows]


@wraps_db_errors("list_user_ids")
def list_user_ids() -> list[str]:
    """Distinct users with at least one connected account."""
    with get_session() as session:
        return list(
            session.scalars(select(AccountRecord.user_id).distinct().order_by(AccountRecord.user_id)).all()
        )


@wraps_db_errors("update_tokens")
def update_tokens(
    account_id: int,
    access_token: str,
    expires_at: datetime,
    refresh_token: Optional[str] = None,
) -> Optional[Account]:
    with get_session() as session:
        row = session.get(AccountRecord, account_id)
        if row is None:
            return None
        row.access_token = access_token
        row.expires_at = expires_at
        if refresh_token:
            row.refresh_token = refresh_token
        row.status = "active"
        session.flush()
        session.refresh(row)
        return Account.model_validate(row)


@wraps_db_errors("set_status")
def set_status(account_id: int, status: AccountStatus) -> bool:
    with get_session() as session:
        row = session.get(AccountRecord, account_id)
        if row is None:
            return False
        row.status = status
        return True


@wraps_db_errors("delete_account")
def delete_account(account_id: int) -> bool:
    """Disconnect: remove the account. Its digests and ledger rows cascade."""
    with get_session() as session:
        result = session.execute(delete(AccountRecord).where(AccountRecord.id == account_id))
        return result.rowcount > 0
