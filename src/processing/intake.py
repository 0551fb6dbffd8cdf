"""Batch request decoding and response encoding.

The browser extension posts ``{"emails": [...], "categories": [...]}``.
Older extension builds sent each email as a JSON-encoded string rather than
an object, and some sent plain message text, so every entry form is accepted.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from src.processing.normalizer import JsonNumber, decode_field, load_json
from src.processing.types import EmailRecord, ExpenseRecord

logger = logging.getLogger(__name__)

_EMAIL_FIELDS = ("date", "sender", "message")


class RequestError(ValueError):
    """The request body is malformed."""


@dataclass(frozen=True)
class BatchRequest:
    emails: list[EmailRecord]
    categories: list[str] = field(default_factory=list)


def _email_from_object(obj: dict[str, Any]) -> EmailRecord:
    lowered = {str(k).lower(): v for k, v in obj.items()}
    values: dict[str, str] = {}
    for name in _EMAIL_FIELDS:
        try:
            values[name] = decode_field(lowered.get(name))
        except TypeError as exc:
            raise RequestError(f"email field {name!r} must be a scalar") from exc
    return EmailRecord(**values)


def _email_from_string(raw: str) -> EmailRecord:
    if not raw.strip():
        return EmailRecord()
    try:
        parsed = load_json(raw)
    except json.JSONDecodeError:
        return EmailRecord(message=raw)
    if isinstance(parsed, dict):
        return _email_from_object(parsed)
    return EmailRecord(message=raw)


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and not isinstance(value, JsonNumber)


def parse_emails(entries: Any) -> list[EmailRecord]:
    """Decode the ``emails`` array; entries may be objects or strings."""
    if not isinstance(entries, list):
        raise RequestError("emails must be an array.")

    emails: list[EmailRecord] = []
    for entry in entries:
        if isinstance(entry, dict):
            emails.append(_email_from_object(entry))
        elif _is_text(entry):
            emails.append(_email_from_string(entry))
        else:
            raise RequestError("emails entries must be objects or strings.")
    return emails


def parse_request(body: str | bytes | dict[str, Any]) -> BatchRequest:
    """Decode a request body into a BatchRequest.

    Raises:
        RequestError: on invalid JSON, a missing or empty ``emails`` array,
            or non-string categories.
    """
    if isinstance(body, (str, bytes)):
        try:
            payload = load_json(body)
        except json.JSONDecodeError as exc:
            raise RequestError("Invalid JSON body.") from exc
    else:
        payload = body

    if not isinstance(payload, dict):
        raise RequestError("Request body is required.")

    emails = parse_emails(payload.get("emails", []))
    if not emails:
        raise RequestError("emails must contain at least one entry.")

    categories = payload.get("categories")
    if categories is None:
        categories = []
    if not isinstance(categories, list) or not all(_is_text(c) for c in categories):
        raise RequestError("categories must be an array of strings.")

    logger.debug("Decoded request emails=%d categories=%d", len(emails), len(categories))
    return BatchRequest(emails=emails, categories=categories)


def format_response(entries: Sequence[ExpenseRecord]) -> dict[str, Any]:
    """Build the ``{total, entries}`` response body."""
    return {"total": len(entries), "entries": [entry.to_dict() for entry in entries]}
