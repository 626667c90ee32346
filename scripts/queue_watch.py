#!/usr/bin/env python3
"""
Watch the doctor queue and today's checkups from a running ClinicFlow API.

Runs the client synchronizer against the server and prints every event it
emits. Useful for checking what a dashboard would see.

    python scripts/queue_watch.py --base-url http://localhost:8000 --api-key k1
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Bootstrap: Add src directory to Python path for src-layout convenience
_script_dir = Path(__file__).resolve().parent
_src_dir_str = str(_script_dir.parent / "src")
if _src_dir_str not in sys.path:
    sys.path.insert(0, _src_dir_str)

from clinicflow.client import ClientSynchronizer, DashboardApiClient, SyncEvent


def _print_event(event: SyncEvent):
    def _callback(payload):
        if event == SyncEvent.QUEUE_UPDATED:
            queue = payload["queue"] or []
            print(f"[{event.value}] {len(queue)} in queue")
            for entry in queue:
                session = entry.get("session", {})
                print(
                    f"  #{entry.get('position')} {session.get('patient_id')} "
                    f"{session.get('priority')} {session.get('status')} "
                    f"waiting {entry.get('waiting_minutes')}m"
                )
        elif event == SyncEvent.CHECKUPS_UPDATED:
            checkups = payload["checkups"] or []
            print(f"[{event.value}] {len(checkups)} checkups today")
        elif event == SyncEvent.SYNC_COMPLETE:
            print(f"[{event.value}] in {payload['duration']:.3f}s")
        else:
            print(f"[{event.value}] {json.dumps(payload, default=str)}")

    return _callback


async def main():
    parser = argparse.ArgumentParser(description="Print ClinicFlow queue sync events")
    parser.add_argument("--base-url", default=None, help="API base URL (default SYNC_BASE_URL)")
    parser.add_argument("--api-key", default=None, help="API key (default SYNC_API_KEY)")
    parser.add_argument("--doctor-id", default=None, help="Show this doctor's queue view")
    parser.add_argument("--interval", type=float, default=None, help="Poll interval in seconds")
    parser.add_argument("--once", action="store_true", help="Sync once and exit")
    args = parser.parse_args()

    client = DashboardApiClient(base_url=args.base_url, api_key=args.api_key, doctor_id=args.doctor_id)
    synchronizer = ClientSynchronizer(client, poll_interval_seconds=args.interval)
    for event in SyncEvent:
        synchronizer.subscribe(event.value, _print_event(event))

    try:
        if args.once:
            ok = await synchronizer.request_sync(force=True)
            return 0 if ok else 1
        synchronizer.start()
        while True:
            await asyncio.sleep(3600)
    except KeyboardInterrupt:
        return 0
    finally:
        await synchronizer.stop()
        await client.close()


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(0)
