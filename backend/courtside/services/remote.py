"""Client for the remote authority that owns confirmed match state."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from ..config import REMOTE_API_URL, REMOTE_TIMEOUT_SECONDS
from ..exceptions import SyncFailure
from ..schemas import PointEvent, RemoteEvent, SubmitEventsRequest, SubmitEventsResult

LOGGER = logging.getLogger(__name__)


class RemoteAuthority:
    """Thin async wrapper around the remote match API.

    Every endpoint answers ``{"data": ...}`` on success and ``{"error": ...}``
    otherwise. Any transport error, non-2xx status or malformed body surfaces
    as :class:`SyncFailure`.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = REMOTE_TIMEOUT_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or REMOTE_API_URL,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )
        self._logger = logger or LOGGER

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RemoteAuthority":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------
    async def submit_events(self, match_id: str, events: Sequence[PointEvent]) -> int:
        """Submit ``events`` as one batch and return the confirmed insert count."""

        body = SubmitEventsRequest(events=[RemoteEvent.from_event(e) for e in events])
        data = await self._request(
            "POST",
            f"/api/matches/{match_id}/events",
            json=body.model_dump(mode="json"),
            match_id=match_id,
        )
        try:
            return SubmitEventsResult.model_validate(data).inserted
        except ValidationError as exc:
            raise SyncFailure(
                "remote did not confirm an inserted count", match_id=match_id
            ) from exc

    async def create_match(
        self,
        venue_id: str | None,
        match_type: str,
        team_a: Sequence[str],
        team_b: Sequence[str],
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/matches",
            json={
                "venue_id": venue_id,
                "match_type": match_type,
                "team_a": list(team_a),
                "team_b": list(team_b),
            },
        )

    async def complete_match(self, match_id: str) -> Any:
        return await self._request(
            "POST", f"/api/matches/{match_id}/complete", match_id=match_id
        )

    async def get_match_summary(self, match_id: str) -> Any:
        return await self._request(
            "GET", f"/api/matches/{match_id}/summary", match_id=match_id
        )

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------
    async def get_players(self) -> List[Dict[str, Any]]:
        return list(await self._request("GET", "/api/players") or [])

    async def get_venues(self) -> List[Dict[str, Any]]:
        return list(await self._request("GET", "/api/venues") or [])

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        match_id: str | None = None,
    ) -> Any:
        try:
            response = await self._client.request(method, url, json=json)
        except httpx.HTTPError as exc:
            self._logger.warning("%s %s failed: %s", method, url, exc)
            raise SyncFailure(f"remote unreachable: {exc}", match_id=match_id) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            message = "Request failed"
            if isinstance(payload, dict) and payload.get("error"):
                message = str(payload["error"])
            self._logger.warning(
                "%s %s rejected with %s: %s", method, url, response.status_code, message
            )
            raise SyncFailure(message, status=response.status_code, match_id=match_id)

        if not isinstance(payload, dict) or "data" not in payload:
            raise SyncFailure(
                "remote returned an unexpected response body",
                status=response.status_code,
                match_id=match_id,
            )
        return payload["data"]
