#!/usr/bin/env python3
"""Print the progress of a rewind by rootId or player PUUID"""
import argparse
import asyncio
import json
from dataclasses import asdict

from rewind.data.progress_store import MongoProgressStore
from rewind.scan_client import find_job_by_puuid, get_scan_status


async def show(args) -> int:
    store = MongoProgressStore()
    try:
        root_id = args.root_id
        if args.puuid:
            root_id = await find_job_by_puuid(store, args.puuid)
            if root_id is None:
                print(f"❌ No live rewind for {args.puuid}")
                return 1

        status = await get_scan_status(store, root_id)
        if status is None:
            print(f"❌ No progress for {root_id} (never started or expired)")
            return 1

        print(json.dumps(asdict(status), indent=2, default=str))
        return 0
    finally:
        await store.close()


def main():
    parser = argparse.ArgumentParser(description="Show rewind progress")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--root-id", help="rootId returned when the scan was submitted")
    group.add_argument("--puuid", help="Look the scan up by player PUUID")
    args = parser.parse_args()

    raise SystemExit(asyncio.run(show(args)))


if __name__ == "__main__":
    main()
