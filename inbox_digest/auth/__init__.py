"""OAuth credentials: token endpoint client and per-account credential manager."""

from inbox_digest.auth.credentials import CredentialManager
from inbox_digest.auth.google_oauth import GoogleTokenClient

__all__ = ["CredentialManager", "GoogleTokenClient"]
