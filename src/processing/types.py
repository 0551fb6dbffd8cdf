"""Types for the expense extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# Longest slice of a raw model response carried on a ParseError.
PREVIEW_CHAR_LIMIT = 500

#: Field names of an expense, in output column order.
EXPENSE_FIELDS: tuple[str, ...] = ("date", "amount", "category", "description")


# ── Records ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EmailRecord:
    """One source email, as scraped from a labelled Gmail message."""

    date: str = ""
    sender: str = ""
    message: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"date": self.date, "sender": self.sender, "message": self.message}


@dataclass(frozen=True)
class ExpenseRecord:
    """One parsed expense.

    Every field is free text: ``amount`` keeps whatever currency symbol the
    model wrote and is never parsed as a number.
    """

    date: str = ""
    amount: str = ""
    category: str = ""
    description: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "date": self.date,
            "amount": self.amount,
            "category": self.category,
            "description": self.description,
        }


# ── Response shapes ────────────────────────────────────────────────────────────


class ShapeKind(str, Enum):
    """How the model laid out its list of expenses."""

    ARRAY = "array"
    WRAPPED_OBJECT = "wrapped_object"
    SINGLE_OBJECT = "single_object"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class ResponseShape:
    """Classification of a parsed model payload.

    ``key`` names the wrapper property for WRAPPED_OBJECT and is None otherwise.
    """

    kind: ShapeKind
    key: str | None = None


# ── Errors ─────────────────────────────────────────────────────────────────────


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    UPSTREAM = "upstream"
    PARSE = "parse"


class ExtractionError(Exception):
    """Base class for every fatal failure of a batch."""

    kind: ErrorKind


class ConfigurationError(ExtractionError):
    """A required prompt, instruction or credential source is missing or blank."""

    kind = ErrorKind.CONFIGURATION


class UpstreamError(ExtractionError):
    """The model API answered with a non-success status (or not at all)."""

    kind = ErrorKind.UPSTREAM

    def __init__(self, status: int | None, body: str) -> None:
        super().__init__(f"Model request failed. Status={status} Body={body}")
        self.status = status
        self.body = body


class ParseError(ExtractionError):
    """The model response could not be turned into a candidate list."""

    kind = ErrorKind.PARSE

    def __init__(self, message: str, raw: str = "") -> None:
        self.preview = raw[:PREVIEW_CHAR_LIMIT]
        detail = f"{message} Preview={self.preview!r}" if raw else message
        super().__init__(detail)
        self.reason = message


# ── Results ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExtractionSuccess:
    entries: list[ExpenseRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class ExtractionFailure:
    error: ExtractionError

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


#: Outcome of one batch; branch on it with ``match``.
ExtractionResult = ExtractionSuccess | ExtractionFailure
