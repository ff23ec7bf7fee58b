"""Exception hierarchy for the digest pipeline.

Every stage raises a subclass of :class:`DigestError`; the orchestrator turns
these into structured per-account failures. Anything else is unexpected and is
reported as a generic failure.
"""


class DigestError(Exception):
    """Base exception for the inbox digest pipeline."""


class CredentialError(DigestError):
    """Credentials for an account could not be made valid."""


class TokenRevokedError(CredentialError):
    """The refresh token was rejected by the authorization server (invalid_grant)."""


class MailProviderError(DigestError):
    """Raised when the mail provider returns an unexpected response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MailAuthError(MailProviderError):
    """Access token rejected by the mail provider (401/403)."""


class MailRateLimitError(MailProviderError):
    """Mail provider signalled a rate limit (429)."""


class FetchError(DigestError):
    """Listing messages failed; the account's digest cannot be built."""


class SummarizationError(DigestError):
    """The language model could not be reached or returned nothing usable."""


class DigestValidationError(DigestError):
    """Model output does not satisfy the digest schema."""

    def __init__(self, message: str, constraint: str | None = None):
        super().__init__(message)
        self.constraint = constraint


class PersistenceError(DigestError):
    """A storage operation failed."""


class NotificationDeliveryError(DigestError):
    """A channel primitive failed to deliver a notification."""
