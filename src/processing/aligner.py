"""Batch aligner: fits model candidates back onto the source batch."""

from collections.abc import Mapping, Sequence

from src.processing.types import EmailRecord, ExpenseRecord


def align(
    candidates: Sequence[Mapping[str, str] | None],
    source_batch: Sequence[EmailRecord],
) -> list[ExpenseRecord]:
    """Return exactly one ExpenseRecord per source email, in source order.

    Alignment is by position only: candidate i belongs to email i.  Missing
    candidates become empty records, surplus candidates are dropped, and a
    blank date is taken from the source email.  No field is ever None.
    """
    aligned: list[ExpenseRecord] = []
    for i, email in enumerate(source_batch):
        candidate = (candidates[i] if i < len(candidates) else None) or {}
        date = candidate.get("date") or ""
        if not date.strip():
            date = email.date or ""
        aligned.append(
            ExpenseRecord(
                date=date,
                amount=candidate.get("amount") or "",
                category=candidate.get("category") or "",
                description=candidate.get("description") or "",
            )
        )
    return aligned
