"""Response normalizer — turns a raw model envelope into a candidate list.

Models do not reliably honour "return JSON only".  Across versions the
expenses have arrived as a bare array, as an object wrapping the array under
one of several keys, as a single expense object, inside markdown code
fences, and as a JSON string that itself contains the JSON.  This module
accepts all of those and rejects everything else with a ParseError.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from src.processing.types import (
    EXPENSE_FIELDS,
    ParseError,
    ResponseShape,
    ShapeKind,
)

logger = logging.getLogger(__name__)

#: Keys under which a model may wrap the list of expenses, checked in order.
WRAPPER_KEYS: tuple[str, ...] = ("entries", "results", "data")

# Content-part types that carry assistant text (chat completions / responses
# / Anthropic messages all use one of these).
_TEXT_PART_TYPES = frozenset({"text", "output_text"})

# A JSON string wrapping JSON is unwrapped at most this many times.
MAX_UNWRAP_DEPTH = 3

_FENCE = "```"
_LANGUAGE_TAG = re.compile(r"(?:[A-Za-z][\w+.-]*)?")
# A tag on the same line as the payload, e.g. "```json [...]```".
_INLINE_LANGUAGE_TAG = re.compile(r"[A-Za-z][\w+.-]*\s+")


class JsonNumber(str):
    """A JSON number kept as the literal text the model wrote."""


def load_json(text: str | bytes) -> Any:
    """json.loads, with float literals kept as JsonNumber text."""
    return json.loads(text, parse_float=JsonNumber)


# ── Step 1: envelope ───────────────────────────────────────────────────────────


def extract_content(raw: str) -> str:
    """Return the assistant text from a provider envelope.

    Raises:
        ParseError: if the envelope is not JSON, has no message content, or
            the content is empty.
    """
    try:
        envelope = load_json(raw)
    except json.JSONDecodeError as exc:
        raise ParseError("Model response envelope is not valid JSON.", raw) from exc

    text = _content_text(_locate_content(envelope, raw))
    if not text.strip():
        raise ParseError("Model returned an empty response.", raw)
    return text


def _locate_content(envelope: Any, raw: str) -> Any:
    """Find the message content in an OpenAI or Anthropic envelope."""
    if isinstance(envelope, dict):
        choices = envelope.get("choices")
        if isinstance(choices, list):
            if choices and isinstance(choices[0], dict):
                message = choices[0].get("message")
                if isinstance(message, dict) and "content" in message:
                    return message["content"]
        elif "content" in envelope:
            return envelope["content"]
    raise ParseError("Model response has no message content.", raw)


def _content_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            part["text"]
            for part in content
            if isinstance(part, dict)
            and part.get("type") in _TEXT_PART_TYPES
            and isinstance(part.get("text"), str)
        )
    # JsonNumber values serialize as strings, so their literals survive.
    return json.dumps(content, ensure_ascii=False)


# ── Step 2: code fences ────────────────────────────────────────────────────────


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if there is one.

    ``"```json\\n[...]\\n```"`` becomes ``"[...]"``.  Text that does not start
    with a fence is returned unchanged.  An opening fence with no closing
    fence loses every backtick.
    """
    stripped = text.strip()
    if not stripped.startswith(_FENCE):
        return text

    body = stripped[len(_FENCE):]
    first_line, newline, rest = body.partition("\n")
    if newline and _LANGUAGE_TAG.fullmatch(first_line.strip()):
        body = rest
    elif not body.startswith(("[", "{", '"')):
        inline_tag = _INLINE_LANGUAGE_TAG.match(body)
        if inline_tag:
            body = body[inline_tag.end():]

    closing = body.rfind(_FENCE)
    if closing == -1:
        return body.replace("`", "").strip()
    return body[:closing].strip()


# ── Step 3: string unwrapping ──────────────────────────────────────────────────


def _loads(text: str, raw: str) -> Any:
    try:
        return load_json(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Model content is not valid JSON ({exc.msg}).", raw) from exc


def unwrap_json(text: str, raw: str = "") -> Any:
    """Parse `text`, unwrapping JSON strings that contain more JSON.

    An empty unwrapped string yields an empty list.

    Raises:
        ParseError: on invalid JSON, or if the value is still a string after
            MAX_UNWRAP_DEPTH unwraps.
    """
    value = _loads(text.strip(), raw)
    unwraps = 0
    while isinstance(value, str) and not isinstance(value, JsonNumber):
        if unwraps == MAX_UNWRAP_DEPTH:
            raise ParseError(
                f"Model content is still a JSON string after {MAX_UNWRAP_DEPTH} unwraps.",
                raw,
            )
        candidate = strip_code_fences(value).strip()
        if not candidate:
            return []
        value = _loads(candidate, raw)
        unwraps += 1
    return value


# ── Step 4: shape classification ───────────────────────────────────────────────


def _find_key(obj: dict[str, Any], name: str) -> str | None:
    """Return the key of `obj` equal to `name`, ignoring case."""
    if name in obj:
        return name
    lowered = name.lower()
    for key in obj:
        if isinstance(key, str) and key.lower() == lowered:
            return key
    return None


def classify_shape(value: Any) -> ResponseShape:
    """Decide how the expenses are laid out in a parsed payload."""
    if isinstance(value, list):
        return ResponseShape(ShapeKind.ARRAY)
    if isinstance(value, dict):
        for name in WRAPPER_KEYS:
            key = _find_key(value, name)
            if key is not None and isinstance(value[key], list):
                return ResponseShape(ShapeKind.WRAPPED_OBJECT, key)
        if any(_find_key(value, name) is not None for name in EXPENSE_FIELDS):
            return ResponseShape(ShapeKind.SINGLE_OBJECT)
    return ResponseShape(ShapeKind.UNRECOGNIZED)


# ── Field decoding ─────────────────────────────────────────────────────────────


def decode_field(value: Any) -> str:
    """Coerce a JSON scalar into the string an expense field holds.

    Numbers keep their JSON text, booleans become ``"true"``/``"false"`` and
    null becomes ``""``.  Arrays and objects are rejected.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return json.dumps(value)
    raise TypeError(f"cannot convert {type(value).__name__} to an expense field")


def decode_candidate(element: Any, raw: str = "") -> dict[str, str]:
    """Decode one candidate into a {field: text} dict.

    Only fields the model actually sent are present; a JSON null element
    decodes to an empty dict.
    """
    if element is None:
        return {}
    if not isinstance(element, dict):
        raise ParseError(
            f"Expected an expense object, got {type(element).__name__}.", raw
        )
    decoded: dict[str, str] = {}
    for name in EXPENSE_FIELDS:
        key = _find_key(element, name)
        if key is None:
            continue
        try:
            decoded[name] = decode_field(element[key])
        except TypeError as exc:
            raise ParseError(f"Field {name!r} is not a scalar: {exc}.", raw) from exc
    return decoded


def extract_candidates(value: Any, raw: str = "") -> list[dict[str, str]]:
    """Classify `value` once and return its candidate expenses."""
    shape = classify_shape(value)
    logger.debug("Model payload shape=%s key=%s", shape.kind.value, shape.key)

    match shape.kind:
        case ShapeKind.ARRAY:
            elements = value
        case ShapeKind.WRAPPED_OBJECT:
            elements = value[shape.key]
        case ShapeKind.SINGLE_OBJECT:
            elements = [value]
        case _:
            raise ParseError(
                f"Unrecognized model payload shape ({type(value).__name__}).", raw
            )
    return [decode_candidate(element, raw) for element in elements]


# ── Pipeline ───────────────────────────────────────────────────────────────────


def normalize(raw: str) -> list[dict[str, str]]:
    """Run all normalization steps over a raw provider response.

    Raises:
        ParseError: if no candidate list can be extracted.
    """
    content = extract_content(raw)
    cleaned = strip_code_fences(content)
    value = unwrap_json(cleaned, raw)
    return extract_candidates(value, raw)
