"""Digest store: one digest per (account, date), forced regenerations as new revisions."""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from inbox_digest.db import get_session
from inbox_digest.db.models.digest import DigestRecord
from inbox_digest.db.repositories import wraps_db_errors
from inbox_digest.errors import PersistenceError
from inbox_digest.models.digest import Digest, DigestContent
from inbox_digest.models.results import CreateOutcome
from inbox_digest.utils.logger import get_logger

logger = get_logger("inbox_digest.digest_store")

# Forced inserts race on revision numbers; give up after this many conflicts
_FORCE_INSERT_ATTEMPTS = 3


def _latest_query(account_id: int):
    return (
        select(DigestRecord)
        .where(DigestRecord.account_id == account_id)
        .order_by(DigestRecord.date_processed.desc(), DigestRecord.revision.desc())
    )


class DigestStore:
    """Readers always see the highest revision for a date."""

    @wraps_db_errors("digest.latest_for_date")
    def latest_for_date(self, account_id: int, digest_date: date) -> Optional[Digest]:
        with get_session() as session:
            row = session.scalars(
                _latest_query(account_id).where(DigestRecord.date_processed == digest_date)
            ).first()
            return Digest.model_validate(row) if row else None

    def exists_for_date(self, account_id: int, digest_date: date) -> bool:
        return self.latest_for_date(account_id, digest_date) is not None

    @wraps_db_errors("digest.latest_for_account")
    def latest_for_account(self, account_id: int) -> Optional[Digest]:
        with get_session() as session:
            row = session.scalars(_latest_query(account_id)).first()
            return Digest.model_validate(row) if row else None

    @wraps_db_errors("digest.get")
    def get(self, digest_id: int) -> Optional[Digest]:
        with get_session() as session:
            row = session.get(DigestRecord, digest_id)
            return Digest.model_validate(row) if row else None

    @wraps_db_errors("digest.list_for_user")
    def list_for_user(
        self,
        user_id: str,
        limit: int = 30,
        account_id: Optional[int] = None,
        digest_date: Optional[date] = None,
    ) -> list[Digest]:
        """Latest revision per (account, date), newest first."""
        with get_session() as session:
            latest = (
                select(
                    DigestRecord.account_id,
                    DigestRecord.date_processed,
                    func.max(DigestRecord.revision).label("revision"),
                )
                .where(DigestRecord.user_id == user_id)
                .group_by(DigestRecord.account_id, DigestRecord.date_processed)
                .subquery()
            )
            q = (
                select(DigestRecord)
                .join(
                    latest,
                    (DigestRecord.account_id == latest.c.account_id)
                    & (DigestRecord.date_processed == latest.c.date_processed)
                    & (DigestRecord.revision == latest.c.revision),
                )
                .order_by(DigestRecord.date_processed.desc(), DigestRecord.account_id)
                .limit(limit)
            )
            if account_id is not None:
                q = q.where(DigestRecord.account_id == account_id)
            if digest_date is not None:
                q = q.where(DigestRecord.date_processed == digest_date)
            return [Digest.model_validate(r) for r in session.scalars(q).all()]

    def create_if_absent(
        self,
        user_id: str,
        account_id: int,
        digest_date: date,
        content: DigestContent,
        email_count: int,
        force: bool = False,
    ) -> CreateOutcome:
        """Persist a digest unless one exists for (account, date).

        Without ``force`` an existing digest is returned with ``created=False``; a
        concurrent writer that wins the insert is treated the same way. With
        ``force`` a new revision is inserted and becomes the one readers see.
        """
        if not force:
            existing = self.latest_for_date(account_id, digest_date)
            if existing is not None:
                return CreateOutcome(created=False, digest=existing)
            try:
                return CreateOutcome(
                    created=True,
                    digest=self._insert(user_id, account_id, digest_date, content, email_count, revision=0),
                )
            except IntegrityError:
                logger.info("digest_store.insert_conflict", account_id=account_id, date=digest_date.isoformat())
                winner = self.latest_for_date(account_id, digest_date)
                if winner is None:
                    raise PersistenceError(f"Digest conflict for account {account_id} on {digest_date} but no row found")
                return CreateOutcome(created=False, digest=winner)

        for attempt in range(1, _FORCE_INSERT_ATTEMPTS + 1):
            revision = self._next_revision(account_id, digest_date)
            try:
                digest = self._insert(user_id, account_id, digest_date, content, email_count, revision=revision)
                return CreateOutcome(created=True, digest=digest)
            except IntegrityError:
                logger.info(
                    "digest_store.revision_conflict",
                    account_id=account_id,
                    revision=revision,
                    attempt=attempt,
                )
        raise PersistenceError(
            f"Could not insert a new digest revision for account {account_id} on {digest_date}"
        )

    @wraps_db_errors("digest.next_revision")
    def _next_revision(self, account_id: int, digest_date: date) -> int:
        with get_session() as session:
            current = session.scalar(
                select(func.max(DigestRecord.revision))
                .where(DigestRecord.account_id == account_id)
                .where(DigestRecord.date_processed == digest_date)
            )
            return 0 if current is None else current + 1

    def _insert(
        self,
        user_id: str,
        account_id: int,
        digest_date: date,
        content: DigestContent,
        email_count: int,
        revision: int,
    ) -> Digest:
        """Insert one row. IntegrityError propagates to the caller; other DB errors become PersistenceError."""
        try:
            with get_session() as session:
                row = DigestRecord(
                    user_id=user_id,
                    account_id=account_id,
                    date_processed=digest_date,
                    revision=revision,
                    overview=list(content.overview),
                    insight=content.insight,
                    important_items=[item.model_dump() for item in content.important_emails],
                    status=content.inbox_status,
                    suggestions=list(content.suggestions),
                    email_count=email_count,
                )
                session.add(row)
                session.flush()
                session.refresh(row)
                digest = Digest.model_validate(row)
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            raise PersistenceError(f"digest insert failed: {e}") from e
        logger.info(
            "digest_store.created",
            digest_id=digest.id,
            account_id=account_id,
            date=digest_date.isoformat(),
            revision=revision,
            status=digest.status,
        )
        return digest

    @wraps_db_errors("digest.mark_delivery")
    def mark_delivery(
        self,
        digest_id: int,
        channel: str,
        status: str,
        sent_at: Optional[datetime] = None,
    ) -> bool:
        """Update only the delivery-status fields of a digest."""
        with get_session() as session:
            row = session.get(DigestRecord, digest_id)
            if row is None:
                return False
            row.sent_via = channel
            row.delivery_status = status
            row.sent_at = sent_at or datetime.now(timezone.utc)
            return True

    def stats_for_user(self, user_id: str, days: int = 30, today: Optional[date] = None) -> dict[str, Any]:
        """Status counts and average email count over the last ``days`` days."""
        since = (today or date.today()) - timedelta(days=days)
        digests = [d for d in self.list_for_user(user_id, limit=10_000) if d.date_processed >= since]
        by_status = {"attention_needed": 0, "worth_a_look": 0, "all_clear": 0}
        for d in digests:
            by_status[d.status] = by_status.get(d.status, 0) + 1
        return {
            "total_summaries": len(digests),
            "by_status": by_status,
            "avg_emails_per_summary": round(sum(d.email_count for d in digests) / len(digests)) if digests else 0,
        }
