"""Application service holding the active workshop session."""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Mapping

from pydantic import BaseModel, ValidationError

from workshop.core.logging import get_logger, log_with_context
from workshop.core.schema import WorkshopData, empty_workshop_data, resolve_field_name
from workshop.core.slots import InMemorySessionSlot, SessionSlot
from workshop.domain import SessionState, WorkshopRecord
from workshop.infrastructure import (
    InMemorySessionGateway,
    SessionGateway,
    SessionGatewayError,
    SessionNotFoundError,
    TransientIOError,
)

logger = get_logger(__name__)

Listener = Callable[[SessionState], None]


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex}"


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _jsonable(item) for key, item in value.items()}
    return value


def _has_content(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, list):
        return bool(value)
    if isinstance(value, BaseModel):
        return value != type(value)()
    return bool(value)


class SessionStore:
    """Single authoritative holder of the active session.

    Reads and mutations are synchronous. Remote writes are scheduled on the
    running event loop and never raise into callers; failures are logged and
    recorded in ``last_save_error``.
    """

    STEP_DEFINITIONS: list[dict[str, object]] = [
        {"id": "big_idea", "label": "Big Idea", "fields": ("big_idea",)},
        {"id": "underlying_goal", "label": "Underlying Goal", "fields": ("underlying_goal",)},
        {"id": "trigger_events", "label": "Trigger Events", "fields": ("trigger_events",)},
        {"id": "jobs", "label": "Jobs To Be Done", "fields": ("jobs",)},
        {"id": "target_buyers", "label": "Target Buyers", "fields": ("target_buyers",)},
        {"id": "painstorming", "label": "Painstorming", "fields": ("pains", "painstorming_results")},
        {"id": "problem_up", "label": "Problem Up", "fields": ("problem_up",)},
        {"id": "target_market", "label": "Target Market", "fields": ("target_market_profile",)},
        {"id": "refine_idea", "label": "Refine Your Idea", "fields": ("refined_idea",)},
        {"id": "next_steps", "label": "Plan Next Steps", "fields": ("next_steps", "reflections")},
    ]
    TOTAL_STEPS = len(STEP_DEFINITIONS)

    def __init__(
        self,
        gateway: SessionGateway,
        slot: SessionSlot,
        *,
        load_retries: int = 1,
        retry_delay: float = 0.2,
        id_factory: Callable[[], str] = new_session_id,
        draft_delay: float = 0.5,
    ) -> None:
        self._gateway = gateway
        self._draft_delay = max(0.0, draft_delay)
        self._slot = slot
        self._load_retries = max(0, load_retries)
        self._retry_delay = retry_delay
        self._id_factory = id_factory

        self._session_id: str | None = None
        self._current_step = 1
        self._workshop_data: WorkshopData | None = None
        self._is_saving = False
        self._save_requested = False
        self._last_save_error: str | None = None

        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # read access
    # ------------------------------------------------------------------
    @property
    def gateway(self) -> SessionGateway:
        return self._gateway

    @property
    def draft_delay(self) -> float:
        """Seconds a step draft waits after the last edit before committing."""

        return self._draft_delay

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def current_step(self) -> int:
        return self._current_step

    @property
    def is_saving(self) -> bool:
        return self._is_saving

    @property
    def last_save_error(self) -> str | None:
        return self._last_save_error

    @property
    def workshop_data(self) -> WorkshopData:
        return (self._workshop_data or empty_workshop_data()).model_copy(deep=True)

    def get_state(self) -> SessionState:
        return SessionState(
            session_id=self._session_id,
            current_step=self._current_step,
            workshop_data=self.workshop_data,
            is_saving=self._is_saving,
            last_save_error=self._last_save_error,
        )

    # ------------------------------------------------------------------
    # subscriptions
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unsubscribes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        state = self.get_state()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("session listener failed")

    # ------------------------------------------------------------------
    # session lifecycle
    # ------------------------------------------------------------------
    async def initialize_session(self) -> None:
        """Resume the session named in the slot, or start a fresh one."""

        stored_id = self._slot.get()
        if stored_id:
            await self.load_session(stored_id)
            return
        await self._start_fresh_session()

    async def load_session(self, session_id: str) -> None:
        try:
            record = await self._fetch(session_id)
        except SessionGatewayError as exc:
            # the remote store rejected the request; keep the id so a later attempt can resume it
            self._last_save_error = str(exc)
            log_with_context(logger, logging.ERROR, "session load rejected", session_id=session_id, error=exc)
            self._notify()
            return
        if record is None:
            log_with_context(logger, logging.INFO, "discarding session id", session_id=session_id)
            self._forget_slot()
            await self._start_fresh_session()
            return

        self._remember_slot(record.session_id)
        self._hydrate(record.session_id, record.current_step, record.workshop_data)
        log_with_context(logger, logging.INFO, "session loaded", session_id=record.session_id, step=record.current_step)

    async def _fetch(self, session_id: str) -> WorkshopRecord | None:
        attempts = self._load_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._gateway.load(session_id)
            except SessionNotFoundError:
                log_with_context(logger, logging.INFO, "session not found", session_id=session_id)
                return None
            except ValidationError as exc:
                log_with_context(
                    logger, logging.ERROR, "stored session is corrupt", session_id=session_id, errors=exc.error_count()
                )
                return None
            except TransientIOError as exc:
                log_with_context(
                    logger, logging.WARNING, "session load failed", session_id=session_id, attempt=attempt, error=exc
                )
                if attempt < attempts and self._retry_delay:
                    await asyncio.sleep(self._retry_delay * attempt)
        return None

    async def _start_fresh_session(self) -> None:
        session_id = self._id_factory()
        self._remember_slot(session_id)
        data = empty_workshop_data()
        self._hydrate(session_id, 1, data)
        try:
            await self._gateway.create(session_id, data, 1)
        except SessionGatewayError as exc:
            self._last_save_error = str(exc)
            log_with_context(logger, logging.WARNING, "could not create remote session", session_id=session_id, error=exc)
        else:
            log_with_context(logger, logging.INFO, "session created", session_id=session_id)
        self._notify()

    def _hydrate(self, session_id: str, step: int, data: WorkshopData) -> None:
        # swap all three together so readers never see a partial session
        self._session_id, self._current_step, self._workshop_data = session_id, self._clamp_step(step), data
        self._last_save_error = None
        self._notify()

    def _remember_slot(self, session_id: str) -> None:
        try:
            self._slot.set(session_id)
        except OSError as exc:
            logger.warning("could not persist session id: %s", exc)

    def _forget_slot(self) -> None:
        try:
            self._slot.clear()
        except OSError as exc:
            logger.warning("could not clear session id: %s", exc)

    # ------------------------------------------------------------------
    # persistence
    # ------------------------------------------------------------------
    async def save_session(self) -> None:
        """Write the aggregate and step; skipped while another save is in flight.

        A skipped call marks the store dirty and the in-flight save writes the
        latest aggregate once more before it finishes.
        """

        if self._session_id is None:
            return
        if self._is_saving:
            self._save_requested = True
            return

        self._set_saving(True)
        try:
            while True:
                self._save_requested = False
                await self._write_once()
                if not self._save_requested or self._session_id is None:
                    break
        finally:
            self._set_saving(False)

    async def _write_once(self) -> None:
        session_id = self._session_id
        if session_id is None:
            return
        data = self._workshop_data or empty_workshop_data()
        try:
            await self._gateway.save(session_id, data, self._current_step)
        except SessionNotFoundError as exc:
            self._last_save_error = str(exc)
            log_with_context(logger, logging.ERROR, "save targeted a missing session", session_id=session_id)
        except SessionGatewayError as exc:
            self._last_save_error = str(exc)
            log_with_context(logger, logging.WARNING, "session save failed", session_id=session_id, error=exc)
        else:
            self._last_save_error = None
            log_with_context(logger, logging.DEBUG, "session saved", session_id=session_id)

    def _set_saving(self, value: bool) -> None:
        self._is_saving = value
        self._notify()

    async def _persist_step(self, session_id: str, step: int) -> None:
        try:
            await self._gateway.update_step(session_id, step)
        except SessionNotFoundError:
            log_with_context(logger, logging.ERROR, "step update targeted a missing session", session_id=session_id)
        except SessionGatewayError as exc:
            log_with_context(logger, logging.WARNING, "step update failed", session_id=session_id, error=exc)

    def _spawn(self, coro: Awaitable[None]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no loop: the in-memory change stands and the next save carries it
            coro.close()  # type: ignore[attr-defined]
            logger.debug("no running event loop, remote write deferred")
            return
        task = loop.create_task(self._guard(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _guard(coro: Awaitable[None]) -> None:
        try:
            await coro
        except Exception:
            logger.exception("background session write failed")

    async def wait_for_pending(self) -> None:
        """Wait until every scheduled remote write has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------
    def _clamp_step(self, step: int) -> int:
        return min(max(int(step), 1), self.TOTAL_STEPS)

    def set_current_step(self, step: int) -> int:
        """Move to ``step`` immediately; the remote update runs in the background."""

        self._current_step = self._clamp_step(step)
        self._notify()
        if self._session_id is not None:
            self._spawn(self._persist_step(self._session_id, self._current_step))
        return self._current_step

    def update_workshop_data(self, partial: Mapping[str, Any]) -> WorkshopData:
        """Replace the given top-level fields and schedule a save.

        Keys may be camelCase or snake_case. Raises ``ValueError`` for unknown
        fields and ``ValidationError`` for malformed values; persistence errors
        never surface here.
        """

        changes: dict[str, Any] = {}
        for key, value in partial.items():
            try:
                name = resolve_field_name(key)
            except KeyError:
                raise ValueError(f"unknown workshop field {key!r}") from None
            changes[name] = _jsonable(value)

        payload = (self._workshop_data or empty_workshop_data()).model_dump(mode="json")
        payload.update(changes)
        self._workshop_data = WorkshopData.model_validate(payload)
        self._notify()
        self._spawn(self.save_session())
        return self.workshop_data

    # ------------------------------------------------------------------
    # derived views
    # ------------------------------------------------------------------
    def progress(self) -> dict[str, object]:
        data = self._workshop_data or empty_workshop_data()
        steps: list[dict[str, object]] = []
        completed = 0
        for number, definition in enumerate(self.STEP_DEFINITIONS, start=1):
            fields: tuple[str, ...] = definition["fields"]  # type: ignore[assignment]
            has_content = any(_has_content(getattr(data, name)) for name in fields)
            if number == self._current_step:
                status = "current"
            elif has_content:
                status = "completed"
            else:
                status = "pending"
            if has_content:
                completed += 1
            steps.append({"number": number, "id": definition["id"], "label": definition["label"], "status": status})

        return {
            "sessionId": self._session_id,
            "currentStep": self._current_step,
            "totalSteps": self.TOTAL_STEPS,
            "percent": round(self._current_step / self.TOTAL_STEPS * 100),
            "completedSteps": completed,
            "steps": steps,
        }

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._listeners.clear()
        self._session_id = None
        self._current_step = 1
        self._workshop_data = None
        self._is_saving = False
        self._save_requested = False
        self._last_save_error = None
        reset_gateway = getattr(self._gateway, "reset", None)
        if callable(reset_gateway):
            reset_gateway()
        self._forget_slot()


_store = SessionStore(InMemorySessionGateway(), InMemorySessionSlot())


def get_session_store() -> SessionStore:
    """Return the process-wide session store."""

    return _store


def configure_session_store(store: SessionStore) -> SessionStore:
    global _store
    _store = store
    return _store


def reset_session_state() -> None:
    """Reset the active store (used in tests)."""

    _store.reset()
