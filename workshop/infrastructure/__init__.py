"""Infrastructure layer exports."""

from .sessions import (
    InMemorySessionGateway,
    SessionGateway,
    SessionGatewayError,
    SessionNotFoundError,
    TransientIOError,
)
from .supabase import SupabaseSessionGateway

__all__ = [
    "InMemorySessionGateway",
    "SessionGateway",
    "SessionGatewayError",
    "SessionNotFoundError",
    "SupabaseSessionGateway",
    "TransientIOError",
]
