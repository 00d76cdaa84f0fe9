"""Pure helpers that edit entity lists while keeping the aggregate invariants.

List helpers return new lists and never mutate their input. Helpers that touch
more than one top-level field return a partial mapping ready for
``SessionStore.update_workshop_data``.
"""
from __future__ import annotations

import uuid
from typing import Any

from workshop.core.fire import FIRE_DIMENSIONS, is_fire_score
from workshop.core.logging import get_logger
from workshop.core.schema import (
    MAX_SELECTED_PAINS,
    MAX_TOP_THREE,
    FireScores,
    Job,
    Pain,
    ProblemUp,
    TargetBuyer,
    WorkshopData,
)

logger = get_logger(__name__)

RATING_FIELDS: tuple[str, ...] = ("urgency", "willingness", "long_term_value", "solution_fit", "accessibility")


def new_record_id(source: str = "user") -> str:
    return f"{source}-{uuid.uuid4().hex[:12]}"


# ----------------------------------------------------------------------
# jobs
# ----------------------------------------------------------------------
def overarching_job(jobs: list[Job]) -> Job | None:
    return next((job for job in jobs if job.is_overarching), None)


def set_overarching_job(jobs: list[Job], job_id: str) -> list[Job]:
    if not any(job.id == job_id for job in jobs):
        return list(jobs)
    return [job.model_copy(update={"is_overarching": job.id == job_id}) for job in jobs]


def add_overarching_job(jobs: list[Job], description: str, *, job_id: str | None = None) -> list[Job]:
    """Replace any existing overarching job with a new user-authored one."""

    kept = [job for job in jobs if not job.is_overarching]
    job = Job(id=job_id or new_record_id(), description=description.strip(), source="user", is_overarching=True)
    return [*kept, job]


# ----------------------------------------------------------------------
# target buyers
# ----------------------------------------------------------------------
def top_three_buyers(buyers: list[TargetBuyer]) -> list[TargetBuyer]:
    return [buyer for buyer in buyers if buyer.is_top_three][:MAX_TOP_THREE]


def mark_top_three(buyers: list[TargetBuyer], buyer_id: str) -> list[TargetBuyer]:
    """Flag ``buyer_id`` as a top-three buyer; a fourth flag is silently refused."""

    target = next((buyer for buyer in buyers if buyer.id == buyer_id), None)
    if target is None or target.is_top_three:
        return list(buyers)
    if sum(1 for buyer in buyers if buyer.is_top_three) >= MAX_TOP_THREE:
        logger.info("top-three limit reached, ignoring buyer %s", buyer_id)
        return list(buyers)
    return [
        buyer.model_copy(update={"is_top_three": True, "shortlisted": True}) if buyer.id == buyer_id else buyer
        for buyer in buyers
    ]


def unmark_top_three(buyers: list[TargetBuyer], buyer_id: str) -> list[TargetBuyer]:
    return [
        buyer.model_copy(update={"is_top_three": False}) if buyer.id == buyer_id else buyer
        for buyer in buyers
    ]


def toggle_shortlist(buyers: list[TargetBuyer], buyer_id: str) -> list[TargetBuyer]:
    return [
        buyer.model_copy(update={"shortlisted": not buyer.shortlisted}) if buyer.id == buyer_id else buyer
        for buyer in buyers
    ]


def rate_buyer(buyers: list[TargetBuyer], buyer_id: str, field: str, value: int) -> list[TargetBuyer]:
    if field not in RATING_FIELDS:
        raise ValueError(f"unknown rating {field!r}")
    if not 0 <= int(value) <= 5:
        raise ValueError("ratings must be between 0 and 5")
    return [
        buyer.model_copy(update={field: int(value)}) if buyer.id == buyer_id else buyer
        for buyer in buyers
    ]


def remove_buyer(data: WorkshopData, buyer_id: str) -> dict[str, Any]:
    """Partial update deleting a buyer and its ProblemUp selection."""

    partial: dict[str, Any] = {
        "targetBuyers": [buyer for buyer in data.target_buyers if buyer.id != buyer_id],
    }
    if data.problem_up is not None and buyer_id in data.problem_up.selected_buyers:
        selected = [bid for bid in data.problem_up.selected_buyers if bid != buyer_id]
        partial["problemUp"] = data.problem_up.model_copy(update={"selected_buyers": selected})
    return partial


# ----------------------------------------------------------------------
# pains
# ----------------------------------------------------------------------
def fire_pains(pains: list[Pain]) -> list[Pain]:
    return [pain for pain in pains if pain.is_fire]


def score_pain(pains: list[Pain], pain_id: str, dimension: str, value: int) -> list[Pain]:
    """Set one FIRE dimension and recompute the derived score and flag."""

    if dimension not in FIRE_DIMENSIONS:
        raise ValueError(f"unknown FIRE dimension {dimension!r}")
    updated: list[Pain] = []
    for pain in pains:
        if pain.id == pain_id:
            scores = (pain.fire_scores or FireScores()).model_dump()
            scores[dimension] = value
            fire_scores = FireScores.model_validate(scores)
            total = sum(scores[name] for name in FIRE_DIMENSIONS)
            payload = pain.model_dump()
            payload.update(fire_scores=fire_scores, is_fire=is_fire_score(total))
            pain = Pain.model_validate(payload)
        updated.append(pain)
    return updated


def set_pain_fire(pains: list[Pain], pain_id: str, flag: bool) -> list[Pain]:
    """Manually (un)flag a pain; a score of 7 or more keeps it flagged."""

    updated: list[Pain] = []
    for pain in pains:
        if pain.id == pain_id:
            payload = pain.model_dump()
            payload["is_fire"] = flag
            pain = Pain.model_validate(payload)
        updated.append(pain)
    return updated


# ----------------------------------------------------------------------
# problem up
# ----------------------------------------------------------------------
def toggle_selected_pain(problem_up: ProblemUp | None, pain_id: str) -> ProblemUp:
    current = problem_up or ProblemUp()
    selected = list(current.selected_pains)
    if pain_id in selected:
        selected.remove(pain_id)
    elif len(selected) < MAX_SELECTED_PAINS:
        selected.append(pain_id)
    else:
        logger.info("problem-up already holds %s pains, ignoring %s", MAX_SELECTED_PAINS, pain_id)
    return current.model_copy(update={"selected_pains": selected})


def toggle_selected_buyer(problem_up: ProblemUp | None, buyer_id: str) -> ProblemUp:
    current = problem_up or ProblemUp()
    selected = list(current.selected_buyers)
    if buyer_id in selected:
        selected.remove(buyer_id)
    else:
        selected.append(buyer_id)
    return current.model_copy(update={"selected_buyers": selected})


__all__ = [
    "RATING_FIELDS",
    "add_overarching_job",
    "fire_pains",
    "mark_top_three",
    "new_record_id",
    "overarching_job",
    "rate_buyer",
    "remove_buyer",
    "score_pain",
    "set_overarching_job",
    "set_pain_fire",
    "toggle_selected_buyer",
    "toggle_selected_pain",
    "toggle_shortlist",
    "top_three_buyers",
    "unmark_top_three",
]
