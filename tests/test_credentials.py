"""Tests for the credential manager: expiry buffer, refresh, failure handling."""

import asyncio
import os
import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Set in-memory DB before any db import
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from inbox_digest.auth.credentials import CredentialManager
from inbox_digest.db import init_db, reset_db
from inbox_digest.db.repositories import account_repo
from inbox_digest.errors import CredentialError, TokenRevokedError
from inbox_digest.models.account import Account, TokenGrant
from tests.fakes import FakeTokenClient

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _connect(expires_at, refresh_token="rt-1", email="user@example.com"):
    manager = CredentialManager(FakeTokenClient())
    return manager.connect_account(
        "user-1", email, TokenGrant(access_token="at-1", refresh_token=refresh_token, expires_at=expires_at)
    )


class TestCredentialManager(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        init_db()

    def setUp(self):
        reset_db()

    def test_expiry_buffer(self):
        """Five-minute buffer: 3 minutes left is expired, 10 minutes left is valid."""
        manager = CredentialManager(FakeTokenClient(), expiry_buffer_seconds=300, clock=lambda: NOW)
        soon = _connect(NOW + timedelta(minutes=3))
        later = _connect(NOW + timedelta(minutes=10), email="other@example.com")
        self.assertTrue(manager.is_token_expired(soon))
        self.assertFalse(manager.is_token_expired(later))

    def test_missing_expiry_counts_as_expired(self):
        manager = CredentialManager(FakeTokenClient(), clock=lambda: NOW)
        account = Account(id=1, user_id="user-1", email="user@example.com", access_token="at-1", expires_at=None)
        self.assertTrue(manager.is_token_expired(account))

    def test_valid_token_returned_without_refresh(self):
        client = FakeTokenClient()
        manager = CredentialManager(client, clock=lambda: NOW)
        account = _connect(NOW + timedelta(hours=1))

        result = asyncio.run(manager.get_valid_credentials(account))
        self.assertEqual(result.access_token, "at-1")
        self.assertEqual(client.refresh_calls, [])

    def test_expired_token_refreshed_and_persisted(self):
        client = FakeTokenClient()
        manager = CredentialManager(client)
        account = _connect(datetime.now(timezone.utc) - timedelta(seconds=1))

        result = asyncio.run(manager.get_valid_credentials(account))
        self.assertIsNotNone(result)
        self.assertEqual(result.access_token, "new-rt-1")
        self.assertEqual(client.refresh_calls, ["rt-1"])
        stored = account_repo.get_account(account.id)
        self.assertEqual(stored.access_token, "new-rt-1")
        # Refresh responses without a refresh token keep the stored one
        self.assertEqual(stored.refresh_token, "rt-1")
        self.assertFalse(manager.is_token_expired(stored))

    def test_no_refresh_token(self):
        client = FakeTokenClient()
        manager = CredentialManager(client)
        account = _connect(datetime.now(timezone.utc) - timedelta(minutes=5), refresh_token=None)

        self.assertIsNone(asyncio.run(manager.get_valid_credentials(account)))
        self.assertEqual(client.refresh_calls, [])

    def test_revoked_refresh_token_marks_expired(self):
        manager = CredentialManager(FakeTokenClient(error=TokenRevokedError("invalid_grant")))
        account = _connect(datetime.now(timezone.utc) - timedelta(minutes=5))

        self.assertIsNone(asyncio.run(manager.get_valid_credentials(account)))
        self.assertEqual(account_repo.get_account(account.id).status, "expired")

    def test_transient_refresh_failure_leaves_status(self):
        manager = CredentialManager(FakeTokenClient(error=CredentialError("HTTP 503")))
        account = _connect(datetime.now(timezone.utc) - timedelta(minutes=5))

        self.assertIsNone(asyncio.run(manager.get_valid_credentials(account)))
        stored = account_repo.get_account(account.id)
        self.assertEqual(stored.status, "active")
        self.assertEqual(stored.access_token, "at-1")

    def test_reconnect_reactivates_and_keeps_refresh_token(self):
        account = _connect(NOW)
        account_repo.set_status(account.id, "expired")
        again = _connect(NOW + timedelta(hours=1), refresh_token=None)
        self.assertEqual(again.id, account.id)
        self.assertEqual(again.status, "active")
        self.assertEqual(again.refresh_token, "rt-1")


if __name__ == "__main__":
    unittest.main()
