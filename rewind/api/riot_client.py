# Riot Match-V5 client - no orchestration dependencies
from typing import Any, Dict, List, Optional

import httpx

from rewind.utils.config import RIOT_API_KEY, RIOT_TIMEOUT_SECONDS, RIOT_USER_AGENT

# Routing regions for Match-V5
BASE_URLS = {
    "europe": "https://europe.api.riotgames.com",
    "americas": "https://americas.api.riotgames.com",
    "asia": "https://asia.api.riotgames.com",
    "sea": "https://sea.api.riotgames.com",
}

_PLATFORM_REGIONS = {
    "europe": ("euw1", "eun1", "tr1", "ru"),
    "americas": ("na1", "br1", "la1", "la2", "oc1"),
    "asia": ("kr", "jp1"),
}

DEFAULT_RETRY_AFTER = 3.0


class RiotAPIError(Exception):
    """Non-2xx response from the Riot API."""

    def __init__(self, status: int, message: str = ""):
        super().__init__(f"HTTP {status} {message}".strip())
        self.status = status


class RateLimitedError(RiotAPIError):
    """HTTP 429. retry_after is the server's advised wait in seconds."""

    def __init__(self, retry_after: float, message: str = ""):
        super().__init__(429, message)
        self.retry_after = retry_after


def parse_retry_after(value: Optional[str], fallback: float = DEFAULT_RETRY_AFTER) -> float:
    """Retry-After seconds, clamped to 1..60."""
    if not value:
        return fallback
    try:
        seconds = float(value)
    except ValueError:
        return fallback
    return min(60.0, max(1.0, seconds))


def platform_to_region(platform: str) -> str:
    p = platform.lower()
    for region, platforms in _PLATFORM_REGIONS.items():
        if p in platforms:
            return region
    return "sea"


def region_from_match_id(match_id: str) -> str:
    """EUW1_7123456789 -> europe"""
    shard = (match_id or "").split("_")[0]
    return platform_to_region(shard)


class RiotClient:
    """
    Thin async client over the three Match-V5 endpoints the crawl uses.

    Rate limiting is enforced by the worker pools that call this client,
    so a 429 is surfaced as RateLimitedError instead of being retried here.
    """

    def __init__(self, api_key: Optional[str] = None, timeout: float = RIOT_TIMEOUT_SECONDS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        api_key = api_key or RIOT_API_KEY
        if not api_key:
            raise ValueError(
                "RIOT_API_KEY environment variable not set. "
                "Please add your Riot developer key to the .env file: RIOT_API_KEY=RGAPI-..."
            )
        self._http = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "X-Riot-Token": api_key,
                "Accept": "application/json",
                "User-Agent": RIOT_USER_AGENT,
            },
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get(self, region: str, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if region not in BASE_URLS:
            raise ValueError(f"Unknown routing region: {region}")
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        resp = await self._http.get(f"{BASE_URLS[region]}{path}", params=clean)
        if resp.status_code == 429:
            raise RateLimitedError(parse_retry_after(resp.headers.get("retry-after")), resp.text[:300])
        if resp.is_error:
            raise RiotAPIError(resp.status_code, resp.text[:300])
        return resp.json()

    async def list_match_ids(
        self,
        region: str,
        puuid: str,
        start: int = 0,
        count: int = 100,
        queue: Optional[int] = None,
        start_time: Optional[int] = None,
    ) -> List[str]:
        """Match ids for a player, newest first."""
        return await self._get(
            region,
            f"/lol/match/v5/matches/by-puuid/{puuid}/ids",
            {"start": start, "count": min(count, 100), "queue": queue, "startTime": start_time},
        )

    async def get_match(self, match_id: str, region: Optional[str] = None) -> Dict[str, Any]:
        return await self._get(region or region_from_match_id(match_id), f"/lol/match/v5/matches/{match_id}")

    async def get_timeline(self, match_id: str, region: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Timeline payload, or None when Riot has none for this match."""
        try:
            return await self._get(
                region or region_from_match_id(match_id), f"/lol/match/v5/matches/{match_id}/timeline"
            )
        except RiotAPIError as e:
            if e.status == 404:
                return None
            raise
