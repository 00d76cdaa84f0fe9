"""Lookups for the id references held by ``ProblemUp``.

Nothing enforces that a referenced id still exists, so every lookup returns
``None`` for a dangling id and callers decide how to render it.
"""
from __future__ import annotations

from typing import Iterable, TypeVar

from workshop.core.schema import Pain, SourcedRecord, TargetBuyer, TriggerEvent, WorkshopData

NOT_SPECIFIED = "Not specified"

RecordT = TypeVar("RecordT", bound=SourcedRecord)


def find_by_id(records: Iterable[RecordT], record_id: str | None) -> RecordT | None:
    if not record_id:
        return None
    for record in records:
        if record.id == record_id:
            return record
    return None


def find_pain(data: WorkshopData, pain_id: str | None) -> Pain | None:
    return find_by_id(data.pains, pain_id)


def find_buyer(data: WorkshopData, buyer_id: str | None) -> TargetBuyer | None:
    return find_by_id(data.target_buyers, buyer_id)


def find_trigger(data: WorkshopData, trigger_id: str | None) -> TriggerEvent | None:
    return find_by_id(data.trigger_events, trigger_id)


def resolve_ids(records: Iterable[RecordT], ids: Iterable[str]) -> list[tuple[str, RecordT | None]]:
    """Pair each id with its record, keeping unresolved ids as ``None``."""

    pool = list(records)
    return [(record_id, find_by_id(pool, record_id)) for record_id in ids]


def describe(record: SourcedRecord | None) -> str:
    if record is None or not record.description.strip():
        return NOT_SPECIFIED
    return record.description


def dangling_references(data: WorkshopData) -> dict[str, list[str]]:
    """Return ids in ``problem_up`` that no longer resolve, grouped by field."""

    problem_up = data.problem_up
    if problem_up is None:
        return {"selectedPains": [], "selectedBuyers": [], "relevantTriggerIds": []}
    return {
        "selectedPains": [pid for pid in problem_up.selected_pains if find_pain(data, pid) is None],
        "selectedBuyers": [bid for bid in problem_up.selected_buyers if find_buyer(data, bid) is None],
        "relevantTriggerIds": [tid for tid in problem_up.relevant_trigger_ids if find_trigger(data, tid) is None],
    }


__all__ = [
    "NOT_SPECIFIED",
    "dangling_references",
    "describe",
    "find_buyer",
    "find_by_id",
    "find_pain",
    "find_trigger",
    "resolve_ids",
]
