"""Destination validators for notification channels."""

import re

from email_validator import EmailNotValidError, validate_email

# E.164: leading +, country code that does not start with 0, up to 15 digits total
_E164_RE = re.compile(r"^\+[1-9]\d{7,14}$")


def is_valid_email(address: str | None) -> bool:
    """Syntax check only; no DNS lookup."""
    if not address or not isinstance(address, str):
        return False
    s = address.strip()
    if not s:
        return False
    try:
        validate_email(s, check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


def normalize_phone(number: str | None) -> str:
    """Strip spaces, dashes, dots and parentheses; keep a leading +."""
    if not number:
        return ""
    return re.sub(r"[\s\-().]", "", number.strip())


def is_valid_e164(number: str | None) -> bool:
    return bool(_E164_RE.match(normalize_phone(number)))
