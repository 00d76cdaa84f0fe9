"""Session gateway backed by the Supabase REST (PostgREST) API."""
from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

import httpx

from workshop.core.logging import get_logger
from workshop.core.schema import WorkshopData
from workshop.domain import WorkshopRecord

from .sessions import SessionGatewayError, SessionNotFoundError, TransientIOError, utc_now

logger = get_logger(__name__)

# request timeout and rate limiting; every other 4xx is a configuration or request error
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


class SupabaseSessionGateway:
    """Read and write ``workshop_sessions`` rows over HTTP."""

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        table: str = "workshop_sessions",
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("url must include scheme and host")
        if not api_key:
            raise ValueError("api_key is required")

        self._api_key = api_key
        self._table = table
        self._endpoint = f"{parsed.scheme}://{parsed.netloc}/rest/v1/{table}"
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _session_filter(session_id: str) -> dict[str, str]:
        return {"session_id": f"eq.{session_id}"}

    async def _request(
        self,
        method: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                self._endpoint,
                params=params,
                json=json,
                headers=self._headers(prefer),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = f"{method} {self._table} failed with status {status}"
            if 400 <= status < 500 and status not in RETRYABLE_CLIENT_STATUSES:
                raise SessionGatewayError(message) from exc
            raise TransientIOError(message) from exc
        except httpx.HTTPError as exc:
            raise TransientIOError(f"{method} {self._table} failed: {exc}") from exc

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransientIOError(f"{method} {self._table} returned invalid JSON") from exc

    @staticmethod
    def _first_row(payload: Any) -> dict[str, Any] | None:
        if isinstance(payload, list):
            return payload[0] if payload and isinstance(payload[0], dict) else None
        if isinstance(payload, dict):
            return payload
        return None

    # ------------------------------------------------------------------
    # gateway operations
    # ------------------------------------------------------------------
    async def create(self, session_id: str, data: WorkshopData, step: int) -> None:
        row = {
            "session_id": session_id,
            "workshop_data": data.to_payload(),
            "current_step": step,
            "updated_at": utc_now(),
        }
        await self._request(
            "POST",
            params={"on_conflict": "session_id"},
            json=row,
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def load(self, session_id: str) -> WorkshopRecord:
        params = {"select": "*", **self._session_filter(session_id)}
        row = self._first_row(await self._request("GET", params=params))
        if row is None:
            raise SessionNotFoundError(session_id)
        return WorkshopRecord(
            session_id=str(row.get("session_id") or session_id),
            workshop_data=WorkshopData.from_payload(row.get("workshop_data")),
            current_step=int(row.get("current_step") or 1),
            updated_at=row.get("updated_at"),
        )

    async def save(self, session_id: str, data: WorkshopData, step: int) -> None:
        body = {"workshop_data": data.to_payload(), "current_step": step, "updated_at": utc_now()}
        await self._patch(session_id, body)

    async def update_step(self, session_id: str, step: int) -> None:
        await self._patch(session_id, {"current_step": step, "updated_at": utc_now()})

    async def _patch(self, session_id: str, body: dict[str, Any]) -> None:
        payload = await self._request(
            "PATCH",
            params=self._session_filter(session_id),
            json=body,
            prefer="return=representation",
        )
        if self._first_row(payload) is None:
            raise SessionNotFoundError(session_id)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["SupabaseSessionGateway"]
