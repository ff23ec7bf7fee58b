"""Inbox digest: daily LLM summaries of connected mailboxes, with opt-in notifications."""

__version__ = "0.1.0"
