"""Data models: messages, windows, digests, accounts and pipeline results."""

from inbox_digest.models.account import Account, Channel, TokenGrant, UserNotificationSettings
from inbox_digest.models.digest import (
    EMPTY_INBOX_CONTENT,
    Digest,
    DigestContent,
    ImportantItem,
    InboxStatus,
)
from inbox_digest.models.email import FetchResult, FetchStats, Message
from inbox_digest.models.results import (
    AccountSummaryResult,
    AccountSummaryStatus,
    AllAccountsResult,
    BatchNotifyResult,
    CreateOutcome,
    DailyRunResult,
    Err,
    NotifyResult,
    Ok,
    SummaryStatusResult,
)
from inbox_digest.models.window import DateWindow

__all__ = [
    "Account",
    "AccountSummaryResult",
    "AccountSummaryStatus",
    "AllAccountsResult",
    "BatchNotifyResult",
    "Channel",
    "CreateOutcome",
    "DailyRunResult",
    "DateWindow",
    "Digest",
    "DigestContent",
    "EMPTY_INBOX_CONTENT",
    "Err",
    "FetchResult",
    "FetchStats",
    "ImportantItem",
    "InboxStatus",
    "Message",
    "NotifyResult",
    "Ok",
    "SummaryStatusResult",
    "TokenGrant",
    "UserNotificationSettings",
]
