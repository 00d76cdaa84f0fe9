from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from workshop.application import SessionStore, StepDraft
from workshop.core.debounce import DebouncedCommitter
from workshop.core.slots import InMemorySessionSlot
from workshop.infrastructure import InMemorySessionGateway

DELAY = 0.02


class CountingGateway(InMemorySessionGateway):
    def __init__(self) -> None:
        super().__init__()
        self.saved: list[dict] = []

    async def save(self, session_id, data, step):
        self.saved.append(data.to_payload())
        await super().save(session_id, data, step)


async def _ready_store() -> tuple[SessionStore, CountingGateway]:
    gateway = CountingGateway()
    store = SessionStore(gateway, InMemorySessionSlot(), retry_delay=0)
    await store.initialize_session()
    return store, gateway


def test_committer_coalesces_burst_into_last_value():
    async def scenario():
        committed: list[int] = []
        committer = DebouncedCommitter(committed.append, delay=DELAY)

        for value in range(10):
            committer.submit(value)
        assert committer.pending is True
        await committer.wait()

        assert committed == [9]
        assert committer.commit_count == 1
        assert committer.pending is False

    asyncio.run(scenario())


def test_committer_cancel_and_flush():
    async def scenario():
        committed: list[str] = []
        committer = DebouncedCommitter(committed.append, delay=10)

        committer.submit("dropped")
        committer.cancel()
        committer.submit("kept")
        committer.flush()

        assert committed == ["kept"]
        assert committer.pending is False

    asyncio.run(scenario())


def test_committer_awaits_async_commit():
    async def scenario():
        committed: list[str] = []

        async def commit(value: str) -> None:
            await asyncio.sleep(0)
            committed.append(value)

        committer = DebouncedCommitter(commit, delay=DELAY)
        committer.submit("a")
        committer.submit("b")
        await committer.wait()

        assert committed == ["b"]

    asyncio.run(scenario())


def test_committer_rejects_negative_delay():
    with pytest.raises(ValueError):
        DebouncedCommitter(print, delay=-1)


@pytest.mark.parametrize("edits", [1, 5, 25])
def test_burst_of_edits_commits_last_value_with_one_write(edits):
    async def scenario():
        store, gateway = await _ready_store()
        draft = StepDraft(store, ["bigIdea"], delay=DELAY)

        text = ""
        for index in range(edits):
            text += str(index % 10)
            draft.edit_in("bigIdea", "description", text)
            assert draft.get("bigIdea")["description"] == text

        assert store.workshop_data.big_idea is None
        await draft.wait()
        await store.wait_for_pending()

        assert draft.commit_count == 1
        assert store.workshop_data.big_idea.description == text
        assert len(gateway.saved) == 1
        assert gateway.saved[0]["bigIdea"]["description"] == text

    asyncio.run(scenario())


def test_draft_commits_only_changed_fields():
    async def scenario():
        store, gateway = await _ready_store()
        store.update_workshop_data({"reflections": {"keyInsights": "from elsewhere"}})
        await store.wait_for_pending()
        gateway.saved.clear()

        draft = StepDraft(store, ["nextSteps", "reflections"], delay=DELAY)
        assert draft.get("reflections")["keyInsights"] == "from elsewhere"

        draft.edit("nextSteps", {"preSellPlanItems": ["Email list"]})
        await draft.wait()
        await store.wait_for_pending()

        data = store.workshop_data
        assert data.next_steps.pre_sell_plan == "Email list"
        assert data.reflections.key_insights == "from elsewhere"
        assert len(gateway.saved) == 1

    asyncio.run(scenario())


def test_two_fields_edited_in_same_tick_both_land():
    async def scenario():
        store, _ = await _ready_store()
        draft = StepDraft(store, ["problemUp", "targetMarketProfile"], delay=DELAY)

        draft.edit_in("problemUp", "targetMoment", "Quarter end")
        draft.edit_in("targetMarketProfile", "name", "Fractional CFOs")
        await draft.wait()
        await store.wait_for_pending()

        data = store.workshop_data
        assert data.problem_up.target_moment == "Quarter end"
        assert data.target_market_profile.name == "Fractional CFOs"

    asyncio.run(scenario())


def test_draft_refuses_fields_it_does_not_own():
    async def scenario():
        store, _ = await _ready_store()
        draft = StepDraft(store, ["bigIdea"], delay=DELAY)
        with pytest.raises(KeyError):
            draft.edit("jobs", [])

    asyncio.run(scenario())


def test_discard_drops_pending_edit():
    async def scenario():
        store, gateway = await _ready_store()
        draft = StepDraft(store, ["underlyingGoal"], delay=DELAY)

        draft.edit_in("underlyingGoal", "businessGoal", "never saved")
        draft.discard()
        await asyncio.sleep(DELAY * 3)
        await store.wait_for_pending()

        assert store.workshop_data.underlying_goal is None
        assert draft.get("underlyingGoal") is None
        assert gateway.saved == []

    asyncio.run(scenario())


def test_draft_delay_defaults_to_store_setting():
    async def scenario():
        gateway = CountingGateway()
        store = SessionStore(gateway, InMemorySessionSlot(), retry_delay=0, draft_delay=DELAY)
        await store.initialize_session()

        draft = StepDraft(store, ["refinedIdea"])
        assert draft.delay == DELAY
        assert StepDraft(store, ["refinedIdea"], delay=0.3).delay == 0.3

        draft.edit_in("refinedIdea", "description", "Done-for-you payroll")
        await draft.wait()
        assert store.workshop_data.refined_idea.description == "Done-for-you payroll"
        await store.wait_for_pending()

    asyncio.run(scenario())


def test_rejected_commit_keeps_edit_uncommitted():
    async def scenario():
        store, gateway = await _ready_store()
        draft = StepDraft(store, ["targetBuyers"], delay=DELAY)

        draft.edit("targetBuyers", [{"id": "b1", "description": "Clinics", "urgency": 9}])
        assert draft.dirty is True
        await draft.wait()
        await store.wait_for_pending()

        assert store.workshop_data.target_buyers == []
        assert gateway.saved == []
        assert draft.dirty is True

        draft.edit("targetBuyers", [{"id": "b1", "description": "Clinics", "urgency": 4}])
        await draft.wait()
        await store.wait_for_pending()

        assert draft.dirty is False
        assert store.workshop_data.target_buyers[0].urgency == 4

    asyncio.run(scenario())
