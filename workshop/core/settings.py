from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _state_root() -> Path:
    env_root = os.getenv("WORKSHOP_STATE_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path(__file__).resolve().parents[2] / "state"


@dataclass(frozen=True)
class Settings:
    supabase_url: str | None
    supabase_key: str | None
    sessions_table: str
    state_root: Path
    debounce_ms: int
    load_retries: int
    cors_origins: list[str]

    @property
    def uses_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls) -> "Settings":
        origins_env = os.getenv("API_CORS_ORIGINS", "")
        origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
        if not origins:
            origins = ["http://localhost:5173", "http://127.0.0.1:5173"]
        return cls(
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_key=os.getenv("SUPABASE_ANON_KEY") or None,
            sessions_table=os.getenv("WORKSHOP_SESSIONS_TABLE") or "workshop_sessions",
            state_root=_state_root(),
            debounce_ms=max(0, _int_env("WORKSHOP_DEBOUNCE_MS", 500)),
            load_retries=max(0, _int_env("WORKSHOP_LOAD_RETRIES", 1)),
            cors_origins=origins,
        )
