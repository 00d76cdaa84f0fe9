"""Domain layer definitions."""

from .sessions import SessionState, WorkshopRecord

__all__ = [
    "SessionState",
    "WorkshopRecord",
]
