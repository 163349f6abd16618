#!/usr/bin/env python3
"""
Request a rewind for one player and optionally wait for it to finish.

    python scripts/start_scan.py europe <puuid> --season 2025 --wait
"""
import argparse
import asyncio
from datetime import datetime, timezone

from temporalio.client import Client

from rewind.data.models import ScanRequest
from rewind.data.progress_store import MongoProgressStore
from rewind.scan_client import get_scan_status, submit_scan
from rewind.utils.config import ALLOWED_QUEUE_IDS, TEMPORAL_HOST, TEMPORAL_NAMESPACE
from rewind.utils.rewind_logging import configure_logging


async def start(args):
    client = await Client.connect(TEMPORAL_HOST, namespace=TEMPORAL_NAMESPACE)
    request = ScanRequest(
        scope=args.scope,
        region=args.region,
        puuid=args.puuid,
        season=args.season,
        queues=args.queues,
    )
    root_id = await submit_scan(client, request)
    print(f"🎯 Rewind submitted - rootId: {root_id}")

    if not args.wait:
        return

    store = MongoProgressStore()
    try:
        while True:
            status = await get_scan_status(store, root_id)
            if status is None:
                print("⏳ Waiting for progress record...")
            else:
                print(f"📈 {status.state}: {status.matches_fetched}/{status.ids_found} matches, "
                      f"{status.timelines_fetched} timelines, {status.open_fetch} fetches pending")
                if status.is_ready:
                    print("✅ Rewind ready")
                    return
            await asyncio.sleep(args.poll)
    finally:
        await store.close()


def main():
    parser = argparse.ArgumentParser(description="Start a rewind scan for one player")
    parser.add_argument("region", help="Routing region: europe, americas, asia, sea")
    parser.add_argument("puuid", help="Player PUUID")
    parser.add_argument("--scope", default="player", help="Scope used to derive the rootId")
    parser.add_argument("--season", type=int, default=datetime.now(timezone.utc).year)
    parser.add_argument("--queues", type=int, nargs="+", default=list(ALLOWED_QUEUE_IDS))
    parser.add_argument("--wait", action="store_true", help="Poll until the scan is ready")
    parser.add_argument("--poll", type=float, default=5.0, help="Poll interval in seconds")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(start(args))


if __name__ == "__main__":
    main()
