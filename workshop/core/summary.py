"""Read-only summary of a workshop document for export consumers."""
from __future__ import annotations

from typing import Any

from workshop.core.fire import fire_level
from workshop.core.mutations import fire_pains, overarching_job, top_three_buyers
from workshop.core.references import NOT_SPECIFIED, describe, find_buyer, find_pain, find_trigger
from workshop.core.schema import WorkshopData


def _text(value: str | None) -> str:
    if value is None or not str(value).strip():
        return NOT_SPECIFIED
    return str(value)


def _problem_up_section(data: WorkshopData) -> dict[str, Any]:
    problem_up = data.problem_up
    if problem_up is None:
        return {
            "selectedPains": [],
            "selectedBuyers": [],
            "relevantTriggers": [],
            "targetMoment": NOT_SPECIFIED,
            "notes": NOT_SPECIFIED,
        }

    pains: list[dict[str, Any]] = []
    for pain_id in problem_up.selected_pains:
        pain = find_pain(data, pain_id)
        pains.append(
            {
                "id": pain_id,
                "found": pain is not None,
                "description": describe(pain),
                "buyerSegment": _text(pain.buyer_segment) if pain else NOT_SPECIFIED,
                "isFire": bool(pain and pain.is_fire),
                "calculatedFireScore": pain.calculated_fire_score if pain else None,
            }
        )

    buyers = []
    for buyer_id in problem_up.selected_buyers:
        buyer = find_buyer(data, buyer_id)
        buyers.append({"id": buyer_id, "found": buyer is not None, "description": describe(buyer)})

    triggers = []
    for trigger_id in problem_up.relevant_trigger_ids:
        trigger = find_trigger(data, trigger_id)
        triggers.append({"id": trigger_id, "found": trigger is not None, "description": describe(trigger)})

    return {
        "selectedPains": pains,
        "selectedBuyers": buyers,
        "relevantTriggers": triggers,
        "targetMoment": _text(problem_up.target_moment),
        "notes": _text(problem_up.notes),
    }


def build_summary(data: WorkshopData | None) -> dict[str, Any]:
    """Flatten the aggregate into display-ready sections.

    Every missing value is rendered as ``"Not specified"`` and every dangling
    id is reported with ``found: False``; the function never raises on an
    incomplete document.
    """

    data = data or WorkshopData()
    big_idea = data.big_idea
    refined = data.refined_idea
    job = overarching_job(data.jobs)
    market = data.target_market_profile
    next_steps = data.next_steps
    reflections = data.reflections

    return {
        "bigIdea": {
            "description": _text(big_idea.description if big_idea else None),
            "targetCustomers": _text(big_idea.target_customers if big_idea else None),
        },
        "underlyingGoal": _text(data.underlying_goal.business_goal if data.underlying_goal else None),
        "triggerEvents": [trigger.description for trigger in data.trigger_events if trigger.description],
        "overarchingJob": describe(job),
        "jobs": [item.description for item in data.jobs if item.description],
        "topBuyers": [
            {"id": buyer.id, "description": describe(buyer), "ratingTotal": buyer.rating_total}
            for buyer in top_three_buyers(data.target_buyers)
        ],
        "firePains": [
            {
                "id": pain.id,
                "description": describe(pain),
                "calculatedFireScore": pain.calculated_fire_score,
                "level": fire_level(pain.calculated_fire_score),
            }
            for pain in fire_pains(data.pains)
        ],
        "ahaMoments": _text(data.painstorming_results.aha_moments if data.painstorming_results else None),
        "problemUp": _problem_up_section(data),
        "targetMarket": {
            "name": _text(market.name if market else None),
            "commonTraits": list(market.common_traits) if market else [],
            "commonTriggers": list(market.common_triggers) if market else [],
            "coreTransformation": _text(market.core_transformation if market else None),
        },
        "refinedIdea": {
            "description": _text(refined.description if refined else None),
            "targetCustomers": _text(refined.target_customers if refined else None),
        },
        "nextSteps": {
            "preSellPlan": list(next_steps.pre_sell_plan_items) if next_steps else [],
            "workshopReflections": list(next_steps.workshop_reflection_items) if next_steps else [],
        },
        "reflections": {
            "keyInsights": _text(reflections.key_insights if reflections else None),
            "nextSteps": _text(reflections.next_steps if reflections else None),
            "personalReflection": _text(reflections.personal_reflection if reflections else None),
        },
    }


__all__ = ["build_summary"]
