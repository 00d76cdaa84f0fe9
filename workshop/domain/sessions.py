"""Domain records for workshop sessions."""
from __future__ import annotations

from dataclasses import dataclass, field

from workshop.core.schema import WorkshopData, empty_workshop_data


@dataclass(slots=True)
class WorkshopRecord:
    """A session row as held by the remote store."""

    session_id: str
    workshop_data: WorkshopData = field(default_factory=empty_workshop_data)
    current_step: int = 1
    updated_at: str | None = None


@dataclass(slots=True)
class SessionState:
    """Snapshot of the store handed to readers and subscribers."""

    session_id: str | None = None
    current_step: int = 1
    workshop_data: WorkshopData = field(default_factory=empty_workshop_data)
    is_saving: bool = False
    last_save_error: str | None = None

    def to_payload(self) -> dict[str, object]:
        return {
            "sessionId": self.session_id,
            "currentStep": self.current_step,
            "isSaving": self.is_saving,
            "lastSaveError": self.last_save_error,
            "workshopData": self.workshop_data.to_payload(),
        }
