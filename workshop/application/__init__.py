"""Application services."""

from .drafts import StepDraft
from .sessions import SessionStore, configure_session_store, get_session_store, reset_session_state

__all__ = [
    "SessionStore",
    "StepDraft",
    "configure_session_store",
    "get_session_store",
    "reset_session_state",
]
