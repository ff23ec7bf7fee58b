"""Render a digest as notification text."""

from inbox_digest.models.digest import Digest

MAX_LISTED_ITEMS = 5

STATUS_EMOJI = {
    "attention_needed": "🔥",
    "worth_a_look": "👀",
    "all_clear": "✅",
}
STATUS_CLOSING = {
    "attention_needed": "⚠️ Action needed on some emails.",
    "worth_a_look": "👀 Some emails worth reviewing.",
    "all_clear": "✅ You're all caught up!",
}
DEFAULT_EMOJI = "📬"
DEFAULT_CLOSING = "📬 Summary complete."


def format_digest_message(digest: Digest) -> str:
    """Status line, insight, up to five important items, first suggestion, closing line."""
    message = f"{STATUS_EMOJI.get(digest.status, DEFAULT_EMOJI)} {' '.join(digest.overview)}\n\n"
    message += f"💡 {digest.insight}\n\n"

    if digest.important_items:
        message += "📋 Important emails:\n"
        for item in digest.important_items[:MAX_LISTED_ITEMS]:
            message += f"• {item.subject} (from {item.sender})\n"
        message += "\n"

    if digest.suggestions:
        message += f"💡 Tip: {digest.suggestions[0]}\n\n"

    message += STATUS_CLOSING.get(digest.status, DEFAULT_CLOSING)
    return message


def email_subject(digest: Digest) -> str:
    return f"📬 Daily Email Summary - {digest.status.upper()}"
