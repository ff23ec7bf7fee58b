"""Parse Gmail API message payloads into :class:`Message`.

Pure functions, no network calls. The first ``text/plain`` part wins; the first
``text/html`` part is kept as a fallback and for HTML statistics.
"""

from __future__ import annotations

import base64
import binascii
import html
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

from inbox_digest.config import PREVIEW_CHARS
from inbox_digest.models.email import Message
from inbox_digest.utils.body_sanitizer import make_preview

DEFAULT_SENDER = "Unknown Sender"
DEFAULT_SUBJECT = "No Subject"


def parse_message(raw_message: dict[str, Any], preview_chars: int = PREVIEW_CHARS) -> Message:
    payload = raw_message.get("payload") or {}
    headers = _extract_headers(payload)
    text_content, html_content = _extract_bodies(payload)
    snippet = html.unescape(raw_message.get("snippet") or "")

    if text_content:
        preview = make_preview(text_content, preview_chars)
    elif html_content:
        preview = make_preview(html_content, preview_chars, content_type="html")
    else:
        preview = ""
    if not preview:
        preview = snippet[:preview_chars]

    return Message(
        id=raw_message["id"],
        thread_id=raw_message.get("threadId", ""),
        subject=headers.get("subject") or DEFAULT_SUBJECT,
        sender=headers.get("from") or DEFAULT_SENDER,
        received_at=_received_at(raw_message, headers),
        text_content=text_content or None,
        html_content=html_content or None,
        preview=preview,
        snippet=snippet,
        labels=list(raw_message.get("labelIds") or []),
    )


def _extract_headers(payload: dict[str, Any]) -> dict[str, str]:
    return {h["name"].lower(): h.get("value", "") for h in payload.get("headers", []) if h.get("name")}


def _extract_bodies(payload: dict[str, Any]) -> tuple[str, str]:
    """Depth-first walk of the MIME tree; returns (first text/plain, first text/html)."""
    text = ""
    markup = ""
    stack = [payload]
    while stack and not (text and markup):
        part = stack.pop()
        mime_type = (part.get("mimeType") or "").lower()
        if mime_type == "text/plain" and not text:
            text = _decode_body_data(part)
        elif mime_type == "text/html" and not markup:
            markup = _decode_body_data(part)
        # Reversed so parts are visited in document order
        stack.extend(reversed(part.get("parts") or []))
    return text, markup


def _decode_body_data(part: dict[str, Any]) -> str:
    data = (part.get("body") or {}).get("data", "")
    if not data:
        return ""
    # Gmail strips base64 padding
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""


def _received_at(raw_message: dict[str, Any], headers: dict[str, str]) -> Optional[datetime]:
    internal = raw_message.get("internalDate")
    if internal:
        try:
            return datetime.fromtimestamp(int(internal) / 1000, tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            pass
    date_header = headers.get("date")
    if date_header:
        try:
            return parsedate_to_datetime(date_header)
        except (TypeError, ValueError):
            return None
    return None
