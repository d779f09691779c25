"""Bracket provider adapter: read-only view of external match state (Challonge v2.1)."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx

import config
from scrim.errors import ExternalProviderError, NotFound

logger = logging.getLogger("scrim.bracket")

STATE_PENDING = "pending"
STATE_OPEN = "open"
STATE_STARTED = "started"
STATE_COMPLETE = "complete"


@dataclass
class BracketParticipant:
    id: str
    name: str


@dataclass
class MatchState:
    id: str
    state: str  # pending, open, started, complete
    winner_participant_id: Optional[str] = None
    participant_ids: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.state == STATE_COMPLETE

    @property
    def has_started(self) -> bool:
        """Underway or already decided: betting is closed."""
        return self.state in (STATE_STARTED, STATE_COMPLETE)


class BracketProvider(Protocol):
    async def get_matches(self, external_id: str) -> list[MatchState]: ...

    async def get_participants(self, external_id: str) -> list[BracketParticipant]: ...

    async def get_match(self, external_id: str, match_id: str) -> MatchState: ...


def _str_id(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def parse_match(item: dict) -> MatchState:
    """Map a JSON:API match resource to MatchState."""
    attrs = item.get("attributes") or {}
    timestamps = attrs.get("timestamps") or {}
    raw_state = attrs.get("state") or STATE_PENDING
    if raw_state == STATE_COMPLETE:
        state = STATE_COMPLETE
    elif timestamps.get("underway_at") or raw_state == "underway":
        state = STATE_STARTED
    else:
        state = raw_state

    winner = attrs.get("winner_id", attrs.get("winners"))
    if isinstance(winner, list):
        winner = winner[0] if winner else None

    participant_ids = [
        _str_id(p.get("participant_id"))
        for p in attrs.get("points_by_participant") or []
        if p.get("participant_id") is not None
    ]
    if not participant_ids:
        rels = item.get("relationships") or {}
        for slot in ("player1", "player2"):
            data = (rels.get(slot) or {}).get("data") or {}
            if data.get("id") is not None:
                participant_ids.append(_str_id(data["id"]))

    return MatchState(
        id=_str_id(item.get("id")),
        state=state,
        winner_participant_id=_str_id(winner),
        participant_ids=participant_ids,
    )


def parse_participant(item: dict) -> BracketParticipant:
    attrs = item.get("attributes") or {}
    return BracketParticipant(id=_str_id(item.get("id")), name=attrs.get("name") or "")


class ChallongeProvider:
    """Async Challonge client with a participant cache.

    Every failure (timeout, connection error, non-2xx answer) is raised as
    ExternalProviderError so callers can abort before touching local state.
    """

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        cache_ttl: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_url = (api_url or config.CHALLONGE_API_URL).rstrip("/")
        self._api_key = api_key if api_key is not None else config.CHALLONGE_API_KEY
        self._cache_ttl = config.BRACKET_CACHE_TTL if cache_ttl is None else cache_ttl
        self._client = httpx.AsyncClient(
            timeout=timeout or config.BRACKET_TIMEOUT,
            transport=transport,
            headers={
                "Content-Type": "application/vnd.api+json",
                "Accept": "application/json",
                "Authorization-Type": "v1",
                "Authorization": self._api_key,
            },
        )
        self._participants_cache: dict[str, tuple[list[BracketParticipant], float]] = {}

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def _request(self, endpoint: str) -> dict:
        if not self._api_key:
            raise ExternalProviderError("Bracket provider API key is not set")
        url = f"{self._api_url}{endpoint}"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Bracket provider unreachable: GET %s (%s)", endpoint, e)
            raise ExternalProviderError(f"Bracket provider unreachable: {e}") from e
        if response.status_code == 404:
            raise NotFound(f"Bracket resource not found: {endpoint}")
        if response.status_code >= 400:
            logger.warning("Bracket provider error %d: GET %s %s", response.status_code, endpoint, response.text[:200])
            raise ExternalProviderError(f"Bracket provider answered {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise ExternalProviderError("Bracket provider returned invalid JSON") from e

    async def get_matches(self, external_id: str) -> list[MatchState]:
        payload = await self._request(f"/tournaments/{external_id}/matches.json")
        return [parse_match(item) for item in payload.get("data") or []]

    async def get_match(self, external_id: str, match_id: str) -> MatchState:
        payload = await self._request(f"/tournaments/{external_id}/matches/{match_id}.json")
        return parse_match(payload.get("data") or {})

    async def get_participants(self, external_id: str) -> list[BracketParticipant]:
        now = time.time()
        if external_id in self._participants_cache:
            participants, ts = self._participants_cache[external_id]
            if now - ts < self._cache_ttl:
                return participants
            del self._participants_cache[external_id]

        payload = await self._request(f"/tournaments/{external_id}/participants.json")
        participants = [parse_participant(item) for item in payload.get("data") or []]
        self._participants_cache[external_id] = (participants, now)
        return participants


def participant_names(participants: list[BracketParticipant]) -> dict[str, str]:
    """participant id -> display name"""
    return {p.id: p.name for p in participants}
