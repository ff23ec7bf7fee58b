"""Message body sanitizer with configurable pipeline.

Usage:
    from inbox_digest.utils.body_sanitizer import sanitize_email_body

    clean_body = sanitize_email_body(raw_html, content_type="html")
"""

import html
import re
from typing import Callable

from bs4 import BeautifulSoup

# Type alias for sanitizer functions
Sanitizer = Callable[[str, str], str]


def html_to_text(text: str, content_type: str) -> str:
    """Convert HTML to plain text, preserving block structure."""
    if content_type.lower() != "html" or not text.strip():
        return text

    soup = BeautifulSoup(text, "lxml")

    # Remove non-content elements
    for el in soup(["script", "style", "head", "meta", "link", "title"]):
        el.decompose()

    for br in soup.find_all("br"):
        br.replace_with("\n")
    for tag in soup.find_all(["p", "div", "tr", "li"]):
        tag.insert_before("\n")
        tag.insert_after("\n")
    for tag in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]):
        tag.insert_before("\n\n")
        tag.insert_after("\n")

    return html.unescape(soup.get_text(separator=" "))


def decode_special_characters(text: str, content_type: str) -> str:
    """Fix encoding issues: zero-width chars, smart quotes, line endings."""
    text = re.sub(r"[\u200b\u200c\u200d\ufeff\u034f]", "", text)  # Zero-width chars

    replacements = {
        "\u2018": "'", "\u2019": "'",  # Smart single quotes
        "\u201c": '"', "\u201d": '"',  # Smart double quotes
        "\u2013": "-", "\u2014": "-",  # Dashes
        "\u2026": "...",  # Ellipsis
        "\u00a0": " ",  # NBSP
        "\r\n": "\n", "\r": "\n",  # Line endings
    }
    for old, new in replacements.items():
        text = text.replace(old, new)

    return text


def normalize_whitespace(text: str, content_type: str) -> str:
    """Collapse horizontal whitespace, keep at most two consecutive blank lines, strip."""
    text = re.sub(r"[^\S\n]+", " ", text)
    lines = [line.strip() for line in text.split("\n")]

    result = []
    blanks = 0
    for line in lines:
        if not line:
            blanks += 1
            if blanks <= 2:
                result.append(line)
        else:
            blanks = 0
            result.append(line)

    return "\n".join(result).strip()


def collapse_whitespace(text: str, content_type: str) -> str:
    """Collapse all whitespace, newlines included, into single spaces."""
    return re.sub(r"\s+", " ", text).strip()


DEFAULT_PIPELINE: list[Sanitizer] = [
    decode_special_characters,
    html_to_text,
    normalize_whitespace,
]

# Single-line rendering used for previews
PREVIEW_PIPELINE: list[Sanitizer] = [
    decode_special_characters,
    html_to_text,
    collapse_whitespace,
]


def sanitize_email_body(
    text: str,
    content_type: str = "text",
    pipeline: list[Sanitizer] | None = None,
) -> str:
    """Sanitize message body content using a configurable pipeline."""
    if not text:
        return ""

    for sanitizer in (pipeline or DEFAULT_PIPELINE):
        text = sanitizer(text, content_type)

    return text


def make_preview(text: str, max_chars: int, content_type: str = "text") -> str:
    """Return the first ``max_chars`` characters of the single-line rendering of ``text``."""
    return sanitize_email_body(text, content_type=content_type, pipeline=PREVIEW_PIPELINE)[:max_chars]
