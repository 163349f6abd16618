"""API client exports"""
from rewind.api.riot_client import (
    RateLimitedError,
    RiotAPIError,
    RiotClient,
    region_from_match_id,
)

__all__ = [
    "RateLimitedError",
    "RiotAPIError",
    "RiotClient",
    "region_from_match_id",
]
