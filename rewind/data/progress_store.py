"""
Progress store - shared counters and hashes with per-key expiry.

The crawl only needs a handful of Redis-like primitives (atomic increments,
hash fields, TTL). MongoDB provides all of them on a single collection:

    { _id: "<key>", value: <int|str>, fields: {<field>: <int|str>},
      applied: [<op token>], expires_at: <datetime> }

- Counters use $inc through find_one_and_update, which is atomic per document.
- Expiry is a TTL index on expires_at. The TTL monitor only runs once a
  minute, so reads also treat a past expires_at as absent.
- decr() never goes below zero: the $inc only matches while value > 0.
- incr/decr/hincrby take an optional token. The token is recorded in the
  same document update as the change, so a retried job that repeats the
  call with the same token leaves the counter alone.
"""
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol

from pymongo import ASCENDING, AsyncMongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError

from rewind.utils.config import MONGODB_DB, MONGODB_URI, PROGRESS_COLLECTION
from rewind.utils.rewind_logging import get_fallback_logger, log


class ProgressStore(Protocol):
    """Primitives the orchestration layer relies on."""

    async def hset(self, key: str, mapping: Mapping[str, Any]) -> None: ...
    async def hsetnx(self, key: str, field: str, value: Any) -> bool: ...
    async def hset_if_not(self, key: str, field: str, value: Any, extra: Optional[Mapping[str, Any]] = None) -> bool: ...
    async def hgetall(self, key: str) -> Dict[str, Any]: ...
    async def hincrby(self, key: str, field: str, amount: int = 1, token: Optional[str] = None) -> int:
        doc = await self._apply_once(
            key, {"$inc": {f"fields.{field}": amount}},
            None if token is None else f"hincrby:{field}:{token}",
        )
        return int(((doc or {}).get("fields") or {}).get(field, 0))

    # === Plain keys ===

    async def incr(self, key: str, token: Optional[str] = None) -> int:
        doc = await self._apply_once(
            key, {"$inc": {"value": 1}},
            None if token is None else f"incr:{token}",
        )
        return int((doc or {}).get("value") or 0)

    async def decr(self, key: str, token: Optional[str] = None) -> int:
        """Decrement, floored at zero. Returns the value after the call."""
        if token is None:
            doc = await self.kv.find_one_and_update(
                {"_id": key, "value": {"$gt": 0}},
                {"$inc": {"value": -1}},
                return_document=ReturnDocument.AFTER,
            )
        else:
            mark = f"decr:{token}"
            # Pipeline update so the floor and the token land together
            doc = await self.kv.find_one_and_update(
                {"_id": key, "applied": {"$ne": mark}},
                [{"$set": {
                    "value": {"$max": [0, {"$subtract": [{"$ifNull": ["$value", 0]}, 1]}]},
                    "applied": {"$setUnion": [{"$ifNull": ["$applied", []]}, [mark]]},
                }}],
                return_document=ReturnDocument.AFTER,
            )
        if doc is not None:
            return int(doc["value"])
        current = await self.get(key)
        return max(0, int(current or 0))

    async def _apply_once(self, key: str, update: dict, mark: Optional[str]) -> Optional[dict]:
        """
        Upsert update into key. With a mark, the update only applies if the
        mark is not yet in applied, and records it. Returns the document
        after the call.
        """
        if mark is None:
            return await self.kv.find_one_and_update(
                {"_id": key}, update, upsert=True, return_document=ReturnDocument.AFTER,
            )
        filt = {"_id": key, "applied": {"$ne": mark}}
        update = dict(update, **{"$addToSet": {"applied": mark}})
        try:
            doc = await self.kv.find_one_and_update(
                filt, update, upsert=True, return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            # Either the mark is already applied or a concurrent upsert created the key
            doc = await self.kv.find_one_and_update(filt, update, return_document=ReturnDocument.AFTER)
        if doc is None:
            log.debug(get_fallback_logger(), "store", "already_applied",
                      "Counter update already applied", key=key, mark=mark)
            doc = await self.kv.find_one({"_id": key})
        return doc

    async def get(self, key: str) -> Any:
        doc = await self.kv.find_one(_live_filter(key), {"value": 1})
        return doc.get("value") if doc else None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        await self.kv.update_one(
            {"_id": key},
            {"$set": {"value": value, "expires_at": _expires_at(ttl)}, "$unset": {"applied": ""}},
            upsert=True,
        )

    async def expire(self, key: str, ttl: int) -> bool:
        result = await self.kv.update_one({"_id": key}, {"$set": {"expires_at": _expires_at(ttl)}})
        return result.matched_count == 1

    async def delete(self, key: str) -> None:
        await self.kv.delete_one({"_id": key})

    async def forget(self, key: str) -> None:
        """Drop the recorded tokens of key, so a fresh scan can reuse them."""
        await self.kv.update_one({"_id": key}, {"$unset": {"applied": ""}})

    async def keys(self, prefix: str) -> List[str]:
        now = datetime.now(timezone.utc)
        cursor = self.kv.find(
            {
                "_id": {"$regex": f"^{re.escape(prefix)}"},
                "$or": [{"expires_at": None}, {"expires_at": {"$gt": now}}],
            },
            {"_id": 1},
        )
        return [doc["_id"] async for doc in cursor]
