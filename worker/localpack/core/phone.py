"""Phone number normalization for listing metadata."""

from __future__ import annotations

import logging
import re
from typing import Optional

import phonenumbers

logger = logging.getLogger(__name__)

# Matches formats like "+81 70-1274-0809" or "(650) 253-0000".
PHONE_CANDIDATE_REGEX = re.compile(r"(?:\+?\d{1,3}[-.\s]?)?\(?\d{1,4}\)?[-.\s]?\d{1,4}[-.\s]?\d{1,9}")
_WHITESPACE = re.compile(r"\s+")


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace (including newlines) into single spaces."""
    return _WHITESPACE.sub(" ", text or "").strip()


def normalize_phone(text: str, default_region: Optional[str] = None) -> str:
    """Return the E.164 form of the first phone-like substring in text, or ''.

    The regex only proposes a candidate; phonenumbers decides whether it is a
    real number. Candidates it rejects are dropped, never returned raw.
    """
    if not text:
        return ""

    match = PHONE_CANDIDATE_REGEX.search(text)
    if not match:
        return ""

    candidate = match.group(0)
    try:
        parsed = phonenumbers.parse(candidate, default_region)
    except phonenumbers.NumberParseException:
        logger.debug("Unparseable phone candidate %r", candidate)
        return ""

    if not phonenumbers.is_valid_number(parsed):
        logger.debug("Discarding invalid phone candidate %r", candidate)
        return ""

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
