"""Durable slot holding the identifier of the active session."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from workshop.core.logging import get_logger

logger = get_logger(__name__)

SLOT_FILENAME = "session.json"


class SessionSlot(Protocol):
    """Small key-value slot that survives application restarts."""

    def get(self) -> str | None: ...

    def set(self, session_id: str) -> None: ...

    def clear(self) -> None: ...


class InMemorySessionSlot:
    def __init__(self, session_id: str | None = None) -> None:
        self._session_id = session_id

    def get(self) -> str | None:
        return self._session_id

    def set(self, session_id: str) -> None:
        self._session_id = session_id

    def clear(self) -> None:
        self._session_id = None


class FileSessionSlot:
    """Keep the session id in ``<root>/session.json``."""

    def __init__(self, root: Path) -> None:
        self._path = Path(root) / SLOT_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> str | None:
        if not self._path.exists():
            return None
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("unreadable session slot %s: %s", self._path, exc)
            return None
        session_id = payload.get("session_id") if isinstance(payload, dict) else None
        return str(session_id) if session_id else None

    def set(self, session_id: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps({"session_id": session_id}), encoding="utf-8")
        tmp.replace(self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


__all__ = ["FileSessionSlot", "InMemorySessionSlot", "SessionSlot"]
