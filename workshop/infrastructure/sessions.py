"""Infrastructure layer for workshop session persistence."""
from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Protocol

from workshop.core.schema import WorkshopData
from workshop.domain import WorkshopRecord


class SessionGatewayError(RuntimeError):
    """Base class for failures reported by a session gateway."""


class SessionNotFoundError(SessionGatewayError):
    """Raised when the remote store holds no record for a session id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"session {session_id!r} not found")
        self.session_id = session_id


class TransientIOError(SessionGatewayError):
    """Raised when the remote store could not be reached or rejected the call."""


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionGateway(Protocol):
    """Persistence contract for workshop sessions.

    Each call is a single logical request: no retries, batching or queueing.
    """

    async def create(self, session_id: str, data: WorkshopData, step: int) -> None: ...

    async def load(self, session_id: str) -> WorkshopRecord: ...

    async def save(self, session_id: str, data: WorkshopData, step: int) -> None: ...

    async def update_step(self, session_id: str, step: int) -> None: ...


class InMemorySessionGateway:
    """Simple in-memory gateway for local runs and tests."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, object]] = {}

    # ------------------------------------------------------------------
    # gateway operations
    # ------------------------------------------------------------------
    async def create(self, session_id: str, data: WorkshopData, step: int) -> None:
        self._records[session_id] = {
            "session_id": session_id,
            "workshop_data": data.to_payload(),
            "current_step": step,
            "updated_at": utc_now(),
        }

    async def load(self, session_id: str) -> WorkshopRecord:
        row = self._records.get(session_id)
        if row is None:
            raise SessionNotFoundError(session_id)
        return WorkshopRecord(
            session_id=session_id,
            workshop_data=WorkshopData.from_payload(copy.deepcopy(row["workshop_data"])),  # type: ignore[arg-type]
            current_step=int(row["current_step"]),  # type: ignore[arg-type]
            updated_at=str(row["updated_at"]),
        )

    async def save(self, session_id: str, data: WorkshopData, step: int) -> None:
        row = self._records.get(session_id)
        if row is None:
            raise SessionNotFoundError(session_id)
        row.update(workshop_data=data.to_payload(), current_step=step, updated_at=utc_now())

    async def update_step(self, session_id: str, step: int) -> None:
        row = self._records.get(session_id)
        if row is None:
            raise SessionNotFoundError(session_id)
        row.update(current_step=step, updated_at=utc_now())

    # ------------------------------------------------------------------
    # inspection helpers
    # ------------------------------------------------------------------
    def get_row(self, session_id: str) -> dict[str, object] | None:
        row = self._records.get(session_id)
        return copy.deepcopy(row) if row is not None else None

    def reset(self) -> None:
        self._records.clear()


__all__ = [
    "InMemorySessionGateway",
    "SessionGateway",
    "SessionGatewayError",
    "SessionNotFoundError",
    "TransientIOError",
    "utc_now",
]
