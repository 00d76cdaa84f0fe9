"""Step-local drafts with debounced commits into the session store."""
from __future__ import annotations

import copy
from typing import Any, Iterable

from pydantic.alias_generators import to_camel

from workshop.core.debounce import DebouncedCommitter
from workshop.core.schema import resolve_field_name

from .sessions import SessionStore

class StepDraft:
    """Local working copy of the top-level fields one step screen edits.

    ``edit`` updates the draft synchronously and restarts the commit timer;
    when the timer expires only the fields changed since the last commit are
    merged into the store.
    """

    def __init__(
        self,
        store: SessionStore,
        fields: Iterable[str],
        *,
        delay: float | None = None,
    ) -> None:
        self._store = store
        if delay is None:
            delay = store.draft_delay
        self._fields = tuple(resolve_field_name(key) for key in fields)
        self._draft: dict[str, Any] = {}
        self._changed: dict[str, Any] = {}
        self._committer: DebouncedCommitter[dict[str, Any]] = DebouncedCommitter(self._commit, delay)
        self.refresh()

    @property
    def fields(self) -> tuple[str, ...]:
        return self._fields

    @property
    def delay(self) -> float:
        return self._committer.delay

    @property
    def pending(self) -> bool:
        return self._committer.pending

    @property
    def dirty(self) -> bool:
        """True while some edit has not been merged into the store."""

        return bool(self._changed)

    @property
    def commit_count(self) -> int:
        return self._committer.commit_count

    def get(self, field: str) -> Any:
        return copy.deepcopy(self._draft.get(self._own(field)))

    def refresh(self) -> None:
        """Re-read every field without an uncommitted edit from the store."""

        dumped = self._store.workshop_data.model_dump(mode="json", by_alias=True)
        for name in self._fields:
            if name in self._changed:
                continue
            self._draft[name] = dumped.get(to_camel(name))

    def edit(self, field: str, value: Any) -> None:
        name = self._own(field)
        self._draft[name] = value
        self._changed[name] = value
        self._committer.submit(dict(self._changed))

    def edit_in(self, field: str, key: str, value: Any) -> None:
        """Edit one attribute of a record-valued field (e.g. ``bigIdea.description``)."""

        name = self._own(field)
        current = self._draft.get(name)
        record = dict(current) if isinstance(current, dict) else {}
        record[key] = value
        self.edit(name, record)

    def flush(self) -> None:
        self._committer.flush()

    def discard(self) -> None:
        self._committer.cancel()
        self._changed.clear()
        self.refresh()

    async def wait(self) -> None:
        await self._committer.wait()

    def _own(self, field: str) -> str:
        name = resolve_field_name(field)
        if name not in self._fields:
            raise KeyError(f"{field!r} is not edited by this step")
        return name

    def _commit(self, changes: dict[str, Any]) -> None:
        # a rejected merge raises here and leaves the edits marked as uncommitted
        self._store.update_workshop_data(changes)
        for name, value in changes.items():
            if self._changed.get(name) is value:
                del self._changed[name]


__all__ = ["StepDraft"]
