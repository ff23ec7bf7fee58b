"""Processed-message ledger: which message ids already contributed to a digest, per account."""

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from inbox_digest.db import get_session
from inbox_digest.db.models.digest import ProcessedMessageRecord
from inbox_digest.db.repositories import wraps_db_errors
from inbox_digest.models.email import Message
from inbox_digest.utils.logger import get_logger

logger = get_logger("inbox_digest.ledger")

# Keeps IN (...) lists under SQLite's bound-parameter limit
_CHUNK = 500


def _chunks(items: list[str], size: int = _CHUNK) -> Iterable[list[str]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


class DeduplicationLedger:
    """Insert-or-ignore ledger keyed by (message_id, account_id)."""

    @wraps_db_errors("ledger.processed_ids")
    def processed_ids(self, account_id: int, message_ids: list[str]) -> set[str]:
        found: set[str] = set()
        if not message_ids:
            return found
        with get_session() as session:
            for chunk in _chunks(list(dict.fromkeys(message_ids))):
                found.update(
                    session.scalars(
                        select(ProcessedMessageRecord.message_id)
                        .where(ProcessedMessageRecord.account_id == account_id)
                        .where(ProcessedMessageRecord.message_id.in_(chunk))
                    ).all()
                )
        return found

    def filter_unprocessed(self, account_id: int, messages: list[Message]) -> list[Message]:
        """Messages whose id is not yet in the ledger, in input order, duplicates dropped."""
        seen = self.processed_ids(account_id, [m.id for m in messages])
        fresh = []
        for m in messages:
            if m.id in seen:
                continue
            seen.add(m.id)
            fresh.append(m)
        logger.debug(
            "ledger.filtered",
            account_id=account_id,
            fetched=len(messages),
            unprocessed=len(fresh),
        )
        return fresh

    @wraps_db_errors("ledger.record_processed")
    def record_processed(self, account_id: int, message_ids: list[str]) -> int:
        """Record ids as processed; ids already present are ignored. Returns rows inserted."""
        ids = list(dict.fromkeys(message_ids))
        if not ids:
            return 0
        new_ids = [i for i in ids if i not in self.processed_ids(account_id, ids)]
        try:
            with get_session() as session:
                session.add_all(ProcessedMessageRecord(message_id=i, account_id=account_id) for i in new_ids)
                session.flush()
            inserted = len(new_ids)
        except IntegrityError:
            # A concurrent writer recorded some of these; insert the rest one at a time
            logger.info("ledger.record_conflict", account_id=account_id, count=len(new_ids))
            inserted = sum(1 for i in new_ids if self._insert_one(account_id, i))
        logger.debug("ledger.recorded", account_id=account_id, inserted=inserted, requested=len(ids))
        return inserted

    def _insert_one(self, account_id: int, message_id: str) -> bool:
        try:
            with get_session() as session:
                session.add(ProcessedMessageRecord(message_id=message_id, account_id=account_id))
                session.flush()
            return True
        except IntegrityError:
            return False
