#!/usr/bin/env python3
"""Watch Nest cameras and print collection updates and new motion events.

This script uses the pynestcam service to:
1) open the Nest REST stream with NEST_ACCESS_TOKEN,
2) reconcile every snapshot into the local camera store,
3) print each collection update and every newly detected event.

Use this to verify which snapshots produce events.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pynestcam import DeviceRecord, DeviceService, NestCamConfig  # noqa: E402
from pynestcam.exceptions import NestCamError  # noqa: E402

_LOG = logging.getLogger("watch_devices")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Print Nest camera updates and new motion events.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--no-sink",
        action="store_true",
        help="Do not forward events to the remote event log.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print full records as JSON.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _describe(record: DeviceRecord, as_json: bool) -> str:
    if as_json:
        return json.dumps(record.model_dump(mode="json"), indent=2)
    event = record.last_event
    start = event.start_time.isoformat() if event is not None and event.start_time else "-"
    online = "online" if record.is_online else "offline"
    return f"{record.id} {record.name or '?'} [{online}] last_event={start}"


async def _print_devices(service: DeviceService, as_json: bool) -> None:
    async with service.subscribe_devices() as updates:
        async for devices in updates:
            print(f"--- {len(devices)} camera(s)")
            for record in devices:
                print(_describe(record, as_json))


async def _print_events(service: DeviceService, as_json: bool) -> None:
    async with service.subscribe_events() as events:
        async for record in events:
            print(f"*** new event: {_describe(record, as_json)}")


async def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        overrides = {"sink_enabled": False} if args.no_sink else {}
        config = NestCamConfig.from_env(**overrides)
    except NestCamError as exc:
        _LOG.error("%s", exc)
        return 2

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:  # pragma: no cover - Windows
            pass

    async with DeviceService(config) as service:
        run_task = service.start()
        printers = [
            asyncio.create_task(_print_devices(service, args.json)),
            asyncio.create_task(_print_events(service, args.json)),
        ]
        waiters = [asyncio.create_task(stop.wait()), run_task]
        try:
            await asyncio.wait(
                waiters,
                timeout=args.duration or None,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiters[0].cancel()
            failed = run_task.done() and not run_task.cancelled() and run_task.exception() is not None
            if failed:
                _LOG.error("Stream stopped: %s", run_task.exception())
            await service.stop()
            await asyncio.gather(*printers, return_exceptions=True)
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(_main()))
