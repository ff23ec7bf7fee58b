"""End-to-end pipeline tests for the orchestrator with in-memory DB and fakes."""

import asyncio
import os
import sys
import unittest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

# Set in-memory DB before any db import
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from inbox_digest.agents.summarizer import SummarizationEngine
from inbox_digest.auth.credentials import CredentialManager
from inbox_digest.db import init_db, reset_db
from inbox_digest.db.repositories import account_repo
from inbox_digest.db.repositories.digest_repo import DigestStore
from inbox_digest.db.repositories.ledger_repo import DeduplicationLedger
from inbox_digest.errors import MailProviderError, PersistenceError
from inbox_digest.fetcher import MessageFetcher
from inbox_digest.orchestrator import DigestOrchestrator
from tests.fakes import FakeAgent, FakeProvider, FakeTokenClient, digest_json, make_raw

DAY = date(2026, 10, 19)


def _connect(user_id="user-1", email="a@example.com", expired=False, refresh_token="rt"):
    expires_at = datetime.now(timezone.utc) + (timedelta(hours=-1) if expired else timedelta(hours=1))
    return account_repo.upsert_account(user_id, email, "at", refresh_token, expires_at)


class SlowAgent:
    async def run(self, prompt):
        await asyncio.sleep(1)


class TestDigestOrchestrator(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        init_db()

    def setUp(self):
        reset_db()
        self.provider = FakeProvider([make_raw("m1", subject="Budget"), make_raw("m2", subject="Invoice")])
        self.agent = FakeAgent(digest_json(status="attention_needed"))
        self.token_client = FakeTokenClient()
        self.store = DigestStore()
        self.ledger = DeduplicationLedger()

    def _orchestrator(self, agent=None, account_timeout=0):
        return DigestOrchestrator(
            credentials=CredentialManager(self.token_client),
            fetcher=MessageFetcher(self.provider),
            summarizer=SummarizationEngine(agent=agent or self.agent),
            ledger=self.ledger,
            digests=self.store,
            account_timeout=account_timeout,
            today=lambda: DAY,
        )

    def test_first_run_creates_digest_and_records_ledger(self):
        account = _connect()
        result = asyncio.run(self._orchestrator().generate_account_summary("user-1", account.id))

        self.assertTrue(result.success, result.error)
        self.assertTrue(result.created)
        self.assertEqual(result.inbox_status, "attention_needed")
        self.assertEqual(result.email_count, 2)
        self.assertEqual(len(self.agent.prompts), 1)
        self.assertEqual(self.ledger.processed_ids(account.id, ["m1", "m2"]), {"m1", "m2"})
        digest = self.store.latest_for_date(account.id, DAY)
        self.assertEqual(digest.id, result.summary_id)

    def test_second_run_same_day_is_idempotent(self):
        account = _connect()
        orch = self._orchestrator()
        first = asyncio.run(orch.generate_account_summary("user-1", account.id))
        second = asyncio.run(orch.generate_account_summary("user-1", account.id))

        self.assertTrue(second.success)
        self.assertTrue(second.already_exists)
        self.assertFalse(second.created)
        self.assertEqual(second.summary_id, first.summary_id)
        self.assertEqual(len(self.agent.prompts), 1)
        self.assertEqual(self.provider.list_calls[1:], [])

    def test_force_with_no_new_mail_is_all_clear_revision(self):
        account = _connect()
        orch = self._orchestrator()
        first = asyncio.run(orch.generate_account_summary("user-1", account.id))
        forced = asyncio.run(orch.generate_account_summary("user-1", account.id, force=True))

        self.assertTrue(forced.success)
        self.assertTrue(forced.created)
        self.assertNotEqual(forced.summary_id, first.summary_id)
        self.assertEqual(forced.inbox_status, "all_clear")
        self.assertEqual(forced.email_count, 0)
        # Processed messages are not summarized again
        self.assertEqual(len(self.agent.prompts), 1)
        self.assertEqual(self.store.latest_for_date(account.id, DAY).id, forced.summary_id)

    def test_force_summarizes_only_new_messages(self):
        account = _connect()
        orch = self._orchestrator()
        asyncio.run(orch.generate_account_summary("user-1", account.id))
        self.provider.messages["m3"] = make_raw("m3", subject="New thing")
        self.provider.order.append("m3")
        forced = asyncio.run(orch.generate_account_summary("user-1", account.id, force=True))

        self.assertEqual(forced.email_count, 1)
        self.assertIn("New thing", self.agent.prompts[-1])
        self.assertNotIn("Budget", self.agent.prompts[-1])

    def test_validation_failure_writes_nothing(self):
        account = _connect()
        agent = FakeAgent(digest_json(status="urgent"))
        result = asyncio.run(self._orchestrator(agent=agent).generate_account_summary("user-1", account.id))

        self.assertFalse(result.success)
        self.assertTrue(result.message.startswith("Summary failed validation"))
        self.assertIsNone(self.store.latest_for_account(account.id))
        self.assertEqual(self.ledger.processed_ids(account.id, ["m1", "m2"]), set())

    def test_ledger_write_failure_keeps_created_digest(self):
        account = _connect()
        with patch.object(self.ledger, "record_processed", side_effect=PersistenceError("database is locked")):
            result = asyncio.run(self._orchestrator().generate_account_summary("user-1", account.id))

        self.assertTrue(result.success)
        self.assertTrue(result.created)
        self.assertIn("database is locked", result.message)
        self.assertEqual(self.store.latest_for_date(account.id, DAY).id, result.summary_id)
        self.assertEqual(self.ledger.processed_ids(account.id, ["m1", "m2"]), set())

    def test_model_failure(self):
        account = _connect()
        agent = FakeAgent(RuntimeError("503"))
        result = asyncio.run(self._orchestrator(agent=agent).generate_account_summary("user-1", account.id))
        self.assertFalse(result.success)
        self.assertEqual(result.message, "Failed to generate summary")
        self.assertIsNone(self.store.latest_for_account(account.id))

    def test_unrefreshable_credentials(self):
        account = _connect(expired=True, refresh_token=None)
        result = asyncio.run(self._orchestrator().generate_account_summary("user-1", account.id))
        self.assertFalse(result.success)
        self.assertEqual(result.message, "Failed to get valid credentials")
        self.assertEqual(self.provider.list_calls, [])

    def test_fetch_failure(self):
        account = _connect()
        self.provider.list_error = MailProviderError("HTTP 500", status_code=500)
        result = asyncio.run(self._orchestrator().generate_account_summary("user-1", account.id))
        self.assertFalse(result.success)
        self.assertEqual(result.message, "Failed to fetch emails")

    def test_unknown_or_foreign_account(self):
        account = _connect(user_id="owner")
        orch = self._orchestrator()
        missing = asyncio.run(orch.generate_account_summary("user-1", 9999))
        foreign = asyncio.run(orch.generate_account_summary("intruder", account.id))
        self.assertEqual(missing.message, "Account not found")
        self.assertEqual(foreign.message, "Account not found")

    def test_invalid_date_range(self):
        account = _connect()
        result = asyncio.run(self._orchestrator().generate_account_summary("user-1", account.id, "last week"))
        self.assertFalse(result.success)
        self.assertEqual(result.message, "Invalid date range")

    def test_timeout(self):
        account = _connect()
        result = asyncio.run(
            self._orchestrator(agent=SlowAgent(), account_timeout=0.05).generate_account_summary(
                "user-1", account.id
            )
        )
        self.assertFalse(result.success)
        self.assertEqual(result.message, "Summary generation timed out")

    def test_all_accounts_isolates_failures(self):
        good = _connect(email="good@example.com")
        bad = _connect(email="bad@example.com", expired=True, refresh_token=None)
        result = asyncio.run(self._orchestrator().generate_all_account_summaries("user-1"))

        self.assertTrue(result.success)
        self.assertEqual(result.total_accounts, 2)
        self.assertEqual(result.successful_accounts, 1)
        self.assertEqual(result.message, "Generated summaries for 1/2 accounts")
        by_id = {r.account_id: r for r in result.results}
        self.assertTrue(by_id[good.id].success)
        self.assertFalse(by_id[bad.id].success)

    def test_all_accounts_none_connected(self):
        result = asyncio.run(self._orchestrator().generate_all_account_summaries("nobody"))
        self.assertTrue(result.success)
        self.assertEqual(result.total_accounts, 0)
        self.assertEqual(result.message, "No connected accounts")

    def test_initial_summary_uses_lookback(self):
        account = _connect()
        result = asyncio.run(self._orchestrator().trigger_initial_summary("user-1", account.id))
        self.assertTrue(result.success)
        self.assertNotEqual(self.provider.list_calls[0]["query"], "after:2026/10/19")
        self.assertIn("since", self.agent.prompts[0])

    def test_status_reports_latest_digest(self):
        first = _connect(email="a@example.com")
        second = _connect(email="b@example.com")
        orch = self._orchestrator()
        asyncio.run(orch.generate_account_summary("user-1", first.id))

        status = orch.get_user_summary_status("user-1")
        self.assertTrue(status.success)
        by_id = {a.account_id: a for a in status.accounts}
        self.assertTrue(by_id[first.id].has_recent_summary)
        self.assertEqual(by_id[first.id].last_summary_status, "attention_needed")
        self.assertFalse(by_id[second.id].has_recent_summary)
        self.assertIsNone(by_id[second.id].last_summary_date)

    def test_run_daily_covers_every_user(self):
        _connect(user_id="u1", email="one@example.com")
        _connect(user_id="u2", email="two@example.com", expired=True, refresh_token=None)
        daily = asyncio.run(self._orchestrator().run_daily())

        self.assertEqual(daily.total_users, 2)
        self.assertEqual(daily.total_accounts, 2)
        self.assertEqual(daily.successful_accounts, 1)
        self.assertEqual(daily.failed_accounts, 1)
        self.assertEqual(set(daily.users), {"u1", "u2"})


if __name__ == "__main__":
    unittest.main()
