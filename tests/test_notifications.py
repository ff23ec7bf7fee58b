"""Tests for digest formatting, channel primitives and dispatch policy."""

import asyncio
import os
import sys
import unittest
from datetime import date, datetime, timezone
from pathlib import Path
from urllib.parse import parse_qs

import httpx

# Set in-memory DB before any db import
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from inbox_digest.db import init_db, reset_db
from inbox_digest.db.repositories import account_repo, notification_repo, settings_repo
from inbox_digest.db.repositories.digest_repo import DigestStore
from inbox_digest.errors import NotificationDeliveryError
from inbox_digest.models.digest import Digest, DigestContent, ImportantItem
from inbox_digest.notifications import (
    NotificationDispatcher,
    SendReceipt,
    TwilioWhatsAppChannel,
    email_subject,
    format_digest_message,
)

DAY = date(2026, 10, 19)


class RecordingChannel:
    def __init__(self, name="email", error=None):
        self.name = name
        self.error = error
        self.sent = []

    async def send(self, destination, content, subject):
        if self.error is not None:
            raise self.error
        self.sent.append((destination, content, subject))
        return SendReceipt(external_id=f"ext-{len(self.sent)}", detail="delivered")


def _digest(**overrides) -> Digest:
    fields = dict(
        id=1,
        user_id="user-1",
        account_id=1,
        date_processed=DAY,
        overview=["Three work emails.", "One invoice."],
        insight="A deadline is coming up.",
        important_items=[ImportantItem(subject="Budget", sender="dana@example.com", reason="Deadline")],
        status="attention_needed",
        suggestions=["Reply to Dana first", "Archive the newsletter"],
        email_count=4,
    )
    fields.update(overrides)
    return Digest(**fields)


class TestFormatting(unittest.TestCase):
    def test_full_message(self):
        expected = (
            "🔥 Three work emails. One invoice.\n\n"
            "💡 A deadline is coming up.\n\n"
            "📋 Important emails:\n"
            "• Budget (from dana@example.com)\n"
            "\n"
            "💡 Tip: Reply to Dana first\n\n"
            "⚠️ Action needed on some emails."
        )
        self.assertEqual(format_digest_message(_digest()), expected)

    def test_all_clear_without_items(self):
        text = format_digest_message(_digest(status="all_clear", important_items=[], suggestions=[]))
        self.assertTrue(text.startswith("✅ "))
        self.assertNotIn("Important emails", text)
        self.assertNotIn("Tip:", text)
        self.assertTrue(text.endswith("✅ You're all caught up!"))

    def test_at_most_five_items_listed(self):
        items = [ImportantItem(subject=f"S{i}", sender="x", reason="r") for i in range(7)]
        text = format_digest_message(_digest(status="worth_a_look", important_items=items))
        self.assertEqual(text.count("• "), 5)
        self.assertIn("👀 Some emails worth reviewing.", text)

    def test_subject(self):
        self.assertEqual(email_subject(_digest(status="worth_a_look")), "📬 Daily Email Summary - WORTH_A_LOOK")


class TestNotificationDispatcher(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        init_db()

    def setUp(self):
        reset_db()
        self.store = DigestStore()
        account = account_repo.upsert_account("user-1", "a@example.com", "at", "rt", datetime.now(timezone.utc))
        content = DigestContent(
            overview=["One", "Two", "Three"],
            insight="Busy.",
            important_emails=[],
            inbox_status="attention_needed",
            suggestions=[],
        )
        self.digest = self.store.create_if_absent("user-1", account.id, DAY, content, 3).digest
        self.email = RecordingChannel("email")
        self.whatsapp = RecordingChannel("whatsapp")
        self.dispatcher = NotificationDispatcher(
            {"email": self.email, "whatsapp": self.whatsapp}, digest_store=self.store
        )

    def test_missing_settings(self):
        result = asyncio.run(self.dispatcher.notify("user-1", self.digest))
        self.assertFalse(result.success)
        self.assertEqual(result.message, "User notification settings not found")
        self.assertEqual(self.email.sent, [])

    def test_email_sent_and_recorded(self):
        settings_repo.upsert_settings("user-1", email="me@example.com")
        result = asyncio.run(self.dispatcher.notify("user-1", self.digest, "email"))

        self.assertTrue(result.success)
        self.assertEqual(result.external_id, "ext-1")
        destination, content, subject = self.email.sent[0]
        self.assertEqual(destination, "me@example.com")
        self.assertTrue(content.startswith("🔥 "))
        self.assertIn("ATTENTION_NEEDED", subject)
        stored = self.store.get(self.digest.id)
        self.assertEqual((stored.sent_via, stored.delivery_status), ("email", "sent"))
        records = notification_repo.list_for_digest(self.digest.id)
        self.assertEqual([(r.channel, r.delivery_status) for r in records], [("email", "sent")])

    def test_disabled_channel_is_success_without_send(self):
        settings_repo.upsert_settings("user-1", email="me@example.com", receive_by_email=False)
        result = asyncio.run(self.dispatcher.notify("user-1", self.digest, "email"))
        self.assertTrue(result.success)
        self.assertEqual(result.message, "User has disabled email notifications")
        self.assertEqual(self.email.sent, [])

    def test_whatsapp_off_by_default(self):
        settings_repo.upsert_settings("user-1", whatsapp_number="+15551234567")
        result = asyncio.run(self.dispatcher.notify("user-1", self.digest, "whatsapp"))
        self.assertTrue(result.success)
        self.assertEqual(result.message, "User has disabled WhatsApp notifications")

    def test_missing_and_invalid_destinations(self):
        settings_repo.upsert_settings("user-1", receive_by_whatsapp=True)
        missing = asyncio.run(self.dispatcher.notify("user-1", self.digest, "whatsapp"))
        self.assertFalse(missing.success)
        self.assertEqual(missing.message, "No WhatsApp number configured")

        settings_repo.upsert_settings("user-1", whatsapp_number="555-1234")
        invalid = asyncio.run(self.dispatcher.notify("user-1", self.digest, "whatsapp"))
        self.assertFalse(invalid.success)
        self.assertIn("Invalid WhatsApp number", invalid.message)
        self.assertEqual(self.whatsapp.sent, [])
        self.assertEqual(self.store.get(self.digest.id).delivery_status, "failed")

    def test_channel_failure_recorded(self):
        settings_repo.upsert_settings("user-1", email="me@example.com")
        dispatcher = NotificationDispatcher(
            {"email": RecordingChannel(error=NotificationDeliveryError("SMTP down"))}, digest_store=self.store
        )
        result = asyncio.run(dispatcher.notify("user-1", self.digest, "email"))
        self.assertFalse(result.success)
        self.assertEqual(result.message, "SMTP down")
        records = notification_repo.list_for_digest(self.digest.id)
        self.assertEqual(records[0].delivery_status, "failed")
        self.assertEqual(records[0].detail, "SMTP down")

    def test_unexpected_channel_error_recorded(self):
        settings_repo.upsert_settings("user-1", email="me@example.com")
        dispatcher = NotificationDispatcher(
            {"email": RecordingChannel(error=RuntimeError("socket closed"))}, digest_store=self.store
        )
        result = asyncio.run(dispatcher.notify("user-1", self.digest, "email"))
        self.assertFalse(result.success)
        self.assertIn("socket closed", result.message)
        records = notification_repo.list_for_digest(self.digest.id)
        self.assertEqual([r.delivery_status for r in records], ["failed"])
        self.assertEqual(self.store.get(self.digest.id).delivery_status, "failed")

    def test_whatsapp_plain_text_reply_still_sent(self):
        settings_repo.upsert_settings("user-1", whatsapp_number="+15551234567", receive_by_whatsapp=True)
        twilio = TwilioWhatsAppChannel(
            account_sid="AC123",
            auth_token="tok",
            from_number="+14155238886",
            base_url="https://twilio.test/2010-04-01",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(201, text="OK"))),
        )
        dispatcher = NotificationDispatcher({"whatsapp": twilio}, digest_store=self.store)
        result = asyncio.run(dispatcher.notify("user-1", self.digest, "whatsapp"))
        self.assertTrue(result.success)
        self.assertIsNone(result.external_id)
        records = notification_repo.list_for_digest(self.digest.id)
        self.assertEqual([(r.channel, r.delivery_status) for r in records], [("whatsapp", "sent")])

    def test_batch_skips_all_clear(self):
        settings_repo.upsert_settings("user-1", email="me@example.com")
        calm = _digest(id=self.digest.id, status="all_clear")
        batch = asyncio.run(self.dispatcher.notify_digests("user-1", [self.digest, calm], "email"))
        self.assertTrue(batch.success)
        self.assertEqual((batch.sent, batch.failed, batch.skipped), (1, 0, 1))
        self.assertEqual(len(self.email.sent), 1)


class TestTwilioWhatsAppChannel(unittest.TestCase):
    def _channel(self, handler):
        return TwilioWhatsAppChannel(
            account_sid="AC123",
            auth_token="tok",
            from_number="+14155238886",
            base_url="https://twilio.test/2010-04-01",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

    def test_send_posts_whatsapp_addresses(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["form"] = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            seen["auth"] = request.headers.get("Authorization", "")
            return httpx.Response(201, json={"sid": "SM1"})

        receipt = asyncio.run(self._channel(handler).send("+15551234567", "hello", "subject"))
        self.assertEqual(receipt.external_id, "SM1")
        self.assertEqual(seen["path"], "/2010-04-01/Accounts/AC123/Messages.json")
        self.assertEqual(seen["form"]["To"], "whatsapp:+15551234567")
        self.assertEqual(seen["form"]["From"], "whatsapp:+14155238886")
        self.assertEqual(seen["form"]["Body"], "hello")
        self.assertTrue(seen["auth"].startswith("Basic "))

    def test_non_json_success_body_has_no_sid(self):
        channel = self._channel(lambda r: httpx.Response(201, text="OK"))
        receipt = asyncio.run(channel.send("+15551234567", "hello", "subject"))
        self.assertIsNone(receipt.external_id)

    def test_rejection_raises(self):
        channel = self._channel(lambda r: httpx.Response(400, json={"message": "bad number"}))
        with self.assertRaises(NotificationDeliveryError):
            asyncio.run(channel.send("+15551234567", "hello", "subject"))

    def test_unconfigured_raises(self):
        channel = TwilioWhatsAppChannel(account_sid="", auth_token="", from_number="")
        self.assertFalse(channel.configured)
        with self.assertRaises(NotificationDeliveryError):
            asyncio.run(channel.send("+15551234567", "hello", "subject"))


if __name__ == "__main__":
    unittest.main()
