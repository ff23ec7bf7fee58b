"""Tests for the message fetcher: pagination caps, batching, concurrency, failure isolation."""

import asyncio
import sys
from datetime import date, datetime, timezone
from pathlib import Path
from unittest import TestCase, main

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from inbox_digest.errors import FetchError, MailProviderError
from inbox_digest.fetcher import MessageFetcher
from inbox_digest.models.window import DateWindow
from tests.fakes import FakeProvider, make_raw

TODAY = date(2026, 10, 19)


def _inbox(n: int) -> list[dict]:
    return [make_raw(f"m{i:03d}", subject=f"Subject {i}") for i in range(n)]


class TestMessageFetcher(TestCase):
    def test_fetches_all_pages(self):
        provider = FakeProvider(_inbox(25))
        fetcher = MessageFetcher(provider, page_size=10, batch_size=5, max_concurrency=3)

        result = asyncio.run(fetcher.fetch_messages("tok", DateWindow.today(), today=TODAY))
        self.assertEqual(len(result.messages), 25)
        self.assertEqual(len(provider.list_calls), 3)
        self.assertEqual(provider.list_calls[0]["query"], "after:2026/10/19")
        self.assertEqual(provider.list_calls[0]["access_token"], "tok")
        self.assertEqual(result.stats.total_emails, 25)
        self.assertEqual(result.stats.with_text_content, 25)

    def test_result_cap_limits_listing(self):
        provider = FakeProvider(_inbox(30))
        fetcher = MessageFetcher(provider, page_size=10, max_results=15)

        result = asyncio.run(fetcher.fetch_messages("tok", DateWindow.today(), today=TODAY))
        self.assertEqual(len(result.messages), 15)
        # Second page only asks for what is left under the cap
        self.assertEqual([c["max_results"] for c in provider.list_calls], [10, 5])
        self.assertEqual(len(provider.get_calls), 15)

    def test_page_cap_stops_endless_listing(self):
        provider = FakeProvider(_inbox(5), endless=True)
        fetcher = MessageFetcher(provider, page_size=5, max_pages=4, max_results=1000)

        result = asyncio.run(fetcher.fetch_messages("tok", DateWindow.today(), today=TODAY))
        self.assertEqual(len(provider.list_calls), 4)
        # Repeated ids across pages are fetched once
        self.assertEqual(len(result.messages), 5)

    def test_concurrency_bound(self):
        provider = FakeProvider(_inbox(40))
        fetcher = MessageFetcher(provider, page_size=100, batch_size=20, max_concurrency=4)

        asyncio.run(fetcher.fetch_messages("tok", DateWindow.today(), today=TODAY))
        self.assertLessEqual(provider.max_in_flight, 4)
        self.assertGreater(provider.max_in_flight, 1)

    def test_batch_size_bounds_in_flight(self):
        provider = FakeProvider(_inbox(12))
        fetcher = MessageFetcher(provider, batch_size=3, max_concurrency=10)

        asyncio.run(fetcher.fetch_messages("tok", DateWindow.today(), today=TODAY))
        self.assertLessEqual(provider.max_in_flight, 3)

    def test_detail_failure_drops_only_that_message(self):
        provider = FakeProvider(_inbox(6), fail_ids={"m002"})
        provider.messages.pop("m004")
        fetcher = MessageFetcher(provider, batch_size=2)

        result = asyncio.run(fetcher.fetch_messages("tok", DateWindow.today(), today=TODAY))
        ids = [m.id for m in result.messages]
        self.assertEqual(ids, ["m000", "m001", "m003", "m005"])

    def test_list_failure_raises_fetch_error(self):
        provider = FakeProvider(_inbox(3), list_error=MailProviderError("HTTP 500", status_code=500))
        fetcher = MessageFetcher(provider)

        with self.assertRaises(FetchError):
            asyncio.run(fetcher.fetch_messages("tok", DateWindow.today(), today=TODAY))
        self.assertEqual(provider.get_calls, [])

    def test_empty_inbox(self):
        provider = FakeProvider([])
        result = asyncio.run(MessageFetcher(provider).fetch_messages("tok", DateWindow.today(), today=TODAY))
        self.assertEqual(result.messages, [])
        self.assertEqual(result.stats.total_emails, 0)
        self.assertEqual(provider.get_calls, [])

    def test_range_window_filters_client_side(self):
        inside = make_raw("in", internal_date=datetime(2026, 10, 2, 9, tzinfo=timezone.utc))
        outside = make_raw("out", internal_date=datetime(2026, 10, 7, 9, tzinfo=timezone.utc))
        provider = FakeProvider([inside, outside])
        window = DateWindow.between(date(2026, 10, 1), date(2026, 10, 3))

        result = asyncio.run(MessageFetcher(provider).fetch_messages("tok", window, today=TODAY))
        self.assertEqual([m.id for m in result.messages], ["in"])
        self.assertIn("before:2026/10/04", provider.list_calls[0]["query"])

    def test_invalid_limits_rejected(self):
        with self.assertRaises(ValueError):
            MessageFetcher(FakeProvider([]), max_concurrency=0)


if __name__ == "__main__":
    main()
