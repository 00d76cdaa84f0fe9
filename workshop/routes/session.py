from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from workshop.application import get_session_store
from workshop.core import mutations
from workshop.core.fire import FIRE_DIMENSIONS
from workshop.core.references import dangling_references, find_buyer, find_pain
from workshop.core.summary import build_summary

router = APIRouter(prefix="/session", tags=["session"])


def _state() -> dict[str, Any]:
    return get_session_store().get_state().to_payload()


def _apply(partial: dict[str, Any]) -> dict[str, Any]:
    store = get_session_store()
    try:
        store.update_workshop_data(partial)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors(include_url=False, include_context=False)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _state()


@router.get("")
async def get_session() -> dict:
    return _state()


@router.post("/init")
async def initialize_session() -> dict:
    await get_session_store().initialize_session()
    return _state()


@router.post("/load")
async def load_session(payload: dict) -> dict:
    session_id = payload.get("sessionId") or payload.get("session_id")
    if not session_id:
        raise HTTPException(status_code=400, detail="sessionId is required")
    await get_session_store().load_session(str(session_id))
    return _state()


@router.patch("/data")
async def update_workshop_data(payload: dict) -> dict:
    if not payload:
        raise HTTPException(status_code=400, detail="no fields provided")
    return _apply(payload)


@router.put("/step")
async def set_current_step(payload: dict) -> dict:
    step = payload.get("step")
    if isinstance(step, bool) or not isinstance(step, int):
        raise HTTPException(status_code=400, detail="step must be an integer")
    get_session_store().set_current_step(step)
    return _state()


@router.post("/save")
async def save_session() -> dict:
    store = get_session_store()
    if store.session_id is None:
        raise HTTPException(status_code=409, detail="no active session")
    await store.save_session()
    await store.wait_for_pending()
    return _state()


@router.get("/progress")
async def get_progress() -> dict:
    return get_session_store().progress()


@router.get("/summary")
async def get_summary() -> dict:
    data = get_session_store().workshop_data
    return {"summary": build_summary(data), "dangling": dangling_references(data)}


@router.post("/jobs/{job_id}/overarching")
async def set_overarching_job(job_id: str) -> dict:
    data = get_session_store().workshop_data
    if not any(job.id == job_id for job in data.jobs):
        raise HTTPException(status_code=404, detail="job not found")
    return _apply({"jobs": mutations.set_overarching_job(data.jobs, job_id)})


@router.post("/buyers/{buyer_id}/top-three")
async def mark_top_three(buyer_id: str) -> dict:
    data = get_session_store().workshop_data
    if find_buyer(data, buyer_id) is None:
        raise HTTPException(status_code=404, detail="buyer not found")
    return _apply({"targetBuyers": mutations.mark_top_three(data.target_buyers, buyer_id)})


@router.delete("/buyers/{buyer_id}/top-three")
async def unmark_top_three(buyer_id: str) -> dict:
    data = get_session_store().workshop_data
    if find_buyer(data, buyer_id) is None:
        raise HTTPException(status_code=404, detail="buyer not found")
    return _apply({"targetBuyers": mutations.unmark_top_three(data.target_buyers, buyer_id)})


@router.post("/buyers/{buyer_id}/shortlist")
async def toggle_shortlist(buyer_id: str) -> dict:
    data = get_session_store().workshop_data
    if find_buyer(data, buyer_id) is None:
        raise HTTPException(status_code=404, detail="buyer not found")
    return _apply({"targetBuyers": mutations.toggle_shortlist(data.target_buyers, buyer_id)})


@router.delete("/buyers/{buyer_id}")
async def delete_buyer(buyer_id: str) -> dict:
    data = get_session_store().workshop_data
    if find_buyer(data, buyer_id) is None:
        raise HTTPException(status_code=404, detail="buyer not found")
    return _apply(mutations.remove_buyer(data, buyer_id))


@router.put("/pains/{pain_id}/fire-scores")
async def score_pain(pain_id: str, payload: dict[str, Any]) -> dict:
    data = get_session_store().workshop_data
    if find_pain(data, pain_id) is None:
        raise HTTPException(status_code=404, detail="pain not found")

    updates = {key: value for key, value in payload.items() if key in FIRE_DIMENSIONS}
    if not updates:
        raise HTTPException(status_code=400, detail="no FIRE dimensions provided")

    pains = data.pains
    try:
        for dimension, value in updates.items():
            pains = mutations.score_pain(pains, pain_id, dimension, int(value))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _apply({"pains": pains})


@router.post("/problem-up/pains/{pain_id}")
async def toggle_problem_pain(pain_id: str) -> dict:
    data = get_session_store().workshop_data
    selected = data.problem_up.selected_pains if data.problem_up else []
    if pain_id not in selected and find_pain(data, pain_id) is None:
        raise HTTPException(status_code=404, detail="pain not found")
    return _apply({"problemUp": mutations.toggle_selected_pain(data.problem_up, pain_id)})


@router.post("/problem-up/buyers/{buyer_id}")
async def toggle_problem_buyer(buyer_id: str) -> dict:
    data = get_session_store().workshop_data
    selected = data.problem_up.selected_buyers if data.problem_up else []
    if buyer_id not in selected and find_buyer(data, buyer_id) is None:
        raise HTTPException(status_code=404, detail="buyer not found")
    return _apply({"problemUp": mutations.toggle_selected_buyer(data.problem_up, buyer_id)})
