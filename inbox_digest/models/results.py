"""Result models returned by the orchestrator and the notification dispatcher."""

from dataclasses import dataclass
from datetime import date
from typing import Generic, Optional, TypeVar, Union

from pydantic import BaseModel, Field

from inbox_digest.models.digest import Digest, InboxStatus

T = TypeVar("T")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: bool = True


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E
    ok: bool = False


Result = Union[Ok[T], Err[E]]


@dataclass(frozen=True)
class CreateOutcome:
    """What DigestStore.create_if_absent did: ``created`` is False when an existing digest was returned."""

    created: bool
    digest: Digest


class AccountSummaryResult(BaseModel):
    account_id: int
    account_email: str = ""
    success: bool
    message: str
    summary_id: Optional[int] = None
    inbox_status: Optional[InboxStatus] = None
    email_count: int = 0
    created: bool = False
    already_exists: bool = False
    error: Optional[str] = None


class AllAccountsResult(BaseModel):
    success: bool
    message: str
    total_accounts: int = 0
    successful_accounts: int = 0
    results: list[AccountSummaryResult] = Field(default_factory=list)


class AccountSummaryStatus(BaseModel):
    account_id: int
    account_email: str
    last_summary_date: Optional[date] = None
    last_summary_status: Optional[InboxStatus] = None
    has_recent_summary: bool = False


class SummaryStatusResult(BaseModel):
    success: bool
    message: str = ""
    accounts: list[AccountSummaryStatus] = Field(default_factory=list)


class DailyRunResult(BaseModel):
    total_users: int = 0
    total_accounts: int = 0
    successful_accounts: int = 0
    failed_accounts: int = 0
    users: dict[str, AllAccountsResult] = Field(default_factory=dict)


class NotifyResult(BaseModel):
    success: bool
    message: str
    channel: str
    external_id: Optional[str] = None


class BatchNotifyResult(BaseModel):
    success: bool
    sent: int = 0
    failed: int = 0
    skipped: int = 0
