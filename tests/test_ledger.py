"""Tests for the processed-message ledger."""

import os
import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

# Set in-memory DB before any db import
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from inbox_digest.db import init_db, reset_db
from inbox_digest.db.repositories import account_repo
from inbox_digest.db.repositories.ledger_repo import DeduplicationLedger
from inbox_digest.models.email import Message


def _account(email: str) -> int:
    return account_repo.upsert_account("user-1", email, "at", "rt", datetime.now(timezone.utc)).id


def _msgs(*ids: str) -> list[Message]:
    return [Message(id=i, subject=f"s-{i}") for i in ids]


class TestDeduplicationLedger(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        init_db()

    def setUp(self):
        reset_db()
        self.ledger = DeduplicationLedger()
        self.account_id = _account("a@example.com")

    def test_record_then_filter(self):
        self.assertEqual(self.ledger.record_processed(self.account_id, ["m1", "m2"]), 2)
        fresh = self.ledger.filter_unprocessed(self.account_id, _msgs("m1", "m3", "m2", "m4"))
        self.assertEqual([m.id for m in fresh], ["m3", "m4"])

    def test_record_is_insert_or_ignore(self):
        self.ledger.record_processed(self.account_id, ["m1"])
        self.assertEqual(self.ledger.record_processed(self.account_id, ["m1", "m2", "m2"]), 1)
        self.assertEqual(self.ledger.processed_ids(self.account_id, ["m1", "m2", "m9"]), {"m1", "m2"})

    def test_scoped_per_account(self):
        other = _account("b@example.com")
        self.ledger.record_processed(self.account_id, ["shared"])
        self.assertEqual([m.id for m in self.ledger.filter_unprocessed(other, _msgs("shared"))], ["shared"])

    def test_filter_drops_duplicates_in_input(self):
        fresh = self.ledger.filter_unprocessed(self.account_id, _msgs("x", "y", "x"))
        self.assertEqual([m.id for m in fresh], ["x", "y"])

    def test_large_id_lists_are_chunked(self):
        ids = [f"id-{i}" for i in range(1200)]
        self.assertEqual(self.ledger.record_processed(self.account_id, ids), 1200)
        self.assertEqual(len(self.ledger.processed_ids(self.account_id, ids)), 1200)

    def test_conflicting_bulk_insert_falls_back_to_single_rows(self):
        self.ledger.record_processed(self.account_id, ["m1"])
        # A stale read lets m1 into the bulk insert, which then hits the unique key
        with patch.object(self.ledger, "processed_ids", return_value=set()):
            inserted = self.ledger.record_processed(self.account_id, ["m1", "m2", "m3"])
        self.assertEqual(inserted, 2)
        self.assertEqual(self.ledger.processed_ids(self.account_id, ["m1", "m2", "m3"]), {"m1", "m2", "m3"})
        self.assertEqual(self.ledger.filter_unprocessed(self.account_id, _msgs("m1", "m2", "m3")), [])

    def test_empty_inputs(self):
        self.assertEqual(self.ledger.record_processed(self.account_id, []), 0)
        self.assertEqual(self.ledger.filter_unprocessed(self.account_id, []), [])

    def test_deleting_account_cascades(self):
        self.ledger.record_processed(self.account_id, ["m1"])
        account_repo.delete_account(self.account_id)
        again = _account("a@example.com")
        self.assertEqual(self.ledger.processed_ids(again, ["m1"]), set())


if __name__ == "__main__":
    unittest.main()
