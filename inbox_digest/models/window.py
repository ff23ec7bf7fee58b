"""Date windows for message retrieval.

A window is one of:

- ``today``: messages received since the start of the current day
- ``initial_setup``: the last ``INITIAL_SETUP_DAYS`` days, used when an account is first connected
- a day count: the last N days
- an explicit ``(start, end)`` date range, inclusive on both ends
"""

from datetime import date, datetime, timedelta, timezone
from typing import Literal, Optional, Union

from pydantic import BaseModel, model_validator

from inbox_digest.config import INITIAL_SETUP_DAYS

WindowMode = Literal["today", "initial_setup", "days", "range"]

# Accepted by the orchestrator and CLI
DateRangeSpec = Union[str, int, tuple[date, date], "DateWindow", None]


class DateWindow(BaseModel):
    mode: WindowMode = "today"
    days: int = 1
    start: Optional[date] = None
    end: Optional[date] = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "DateWindow":
        if self.mode == "range":
            if self.start is None or self.end is None:
                raise ValueError("range window needs both start and end")
            if self.start > self.end:
                raise ValueError("range window start must not be after end")
        if self.mode == "days" and self.days < 1:
            raise ValueError("days window needs days >= 1")
        return self

    @classmethod
    def today(cls) -> "DateWindow":
        return cls(mode="today", days=1)

    @classmethod
    def initial_setup(cls) -> "DateWindow":
        return cls(mode="initial_setup", days=INITIAL_SETUP_DAYS)

    @classmethod
    def last_days(cls, days: int) -> "DateWindow":
        return cls(mode="days", days=days)

    @classmethod
    def between(cls, start: date, end: date) -> "DateWindow":
        return cls(mode="range", start=start, end=end)

    @classmethod
    def parse(cls, spec: DateRangeSpec) -> "DateWindow":
        """Coerce the caller-facing date-range forms into a window."""
        if spec is None:
            return cls.today()
        if isinstance(spec, DateWindow):
            return spec
        if isinstance(spec, bool):
            raise ValueError(f"Unsupported date range: {spec!r}")
        if isinstance(spec, int):
            return cls.last_days(spec)
        if isinstance(spec, tuple):
            start, end = spec
            return cls.between(start, end)
        if isinstance(spec, str):
            value = spec.strip().lower()
            if value == "today":
                return cls.today()
            if value == "initial_setup":
                return cls.initial_setup()
            if value.isdigit():
                return cls.last_days(int(value))
            if ":" in value:
                start_raw, end_raw = value.split(":", 1)
                return cls.between(date.fromisoformat(start_raw), date.fromisoformat(end_raw))
        raise ValueError(f"Unsupported date range: {spec!r}")

    def start_date(self, today: date) -> date:
        if self.mode == "range":
            return self.start
        if self.mode == "today":
            return today
        return today - timedelta(days=self.days)

    def end_date(self, today: date) -> date:
        return self.end if self.mode == "range" else today

    def digest_date(self, today: date) -> date:
        """The calendar date a digest built from this window is filed under."""
        return self.end_date(today)

    def to_query(self, today: date) -> str:
        """Provider search query (Gmail ``after:``/``before:`` syntax, before is exclusive)."""
        query = f"after:{self.start_date(today).strftime('%Y/%m/%d')}"
        if self.mode == "range":
            query += f" before:{(self.end + timedelta(days=1)).strftime('%Y/%m/%d')}"
        return query

    def contains(self, received_at: Optional[datetime]) -> bool:
        """Client-side range check; only explicit ranges are filtered, undated messages are kept."""
        if self.mode != "range" or received_at is None:
            return True
        received = received_at.astimezone(timezone.utc).date() if received_at.tzinfo else received_at.date()
        return self.start <= received <= self.end

    def describe(self, today: date) -> str:
        """Time context for the summarization prompt."""
        if self.mode == "today":
            return "today"
        if self.mode == "range":
            if self.start == self.end:
                return f"on {self.start.isoformat()}"
            return f"between {self.start.isoformat()} and {self.end.isoformat()}"
        return f"since {self.start_date(today).isoformat()}"
