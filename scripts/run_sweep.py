#!/usr/bin/env python3
"""
meetnotes sweep runner

Advances pending/processing recordings by one step, the same work the
``/api/v1/cron/process-recordings`` endpoint does. Intended for a system
cron or a one-off operator run.

Usage::

    python scripts/run_sweep.py --batch-size 20 --no-summarize
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path for ``meetnotes`` imports
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from meetnotes.core.config import get_settings  # noqa: E402
from meetnotes.services.container import build_services  # noqa: E402


async def run(batch_size: int | None, summarize: bool) -> int:
    """Run one sweep and print a line per recording.

    Returns:
        Exit code: 0 when every recording advanced cleanly, 1 otherwise.
    """
    updates = {"sweep_auto_summarize": summarize}
    if batch_size is not None:
        updates["sweep_batch_size"] = batch_size
    settings = get_settings().model_copy(update=updates)

    services = build_services(settings)
    try:
        await services.database.init()
        items = await services.sweeper.sweep()
    finally:
        await services.aclose()

    if not items:
        print("No recordings to process.")
        return 0

    for item in items:
        marker = "OK  " if item.success else "FAIL"
        line = f"  {marker} #{item.recording_id} {item.previous_status} -> {item.action}"
        if item.error:
            line += f" ({item.error})"
        print(line)
    print(f"\nDone: {len(items)} recordings swept.")
    return 0 if all(item.success for item in items) else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Advance unfinished meetnotes recordings.")
    parser.add_argument("--batch-size", type=int, default=None, help="Recordings per sweep")
    parser.add_argument("--no-summarize", action="store_true", help="Skip summarization after transcription")
    args = parser.parse_args()

    logging.basicConfig(level=get_settings().log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    return asyncio.run(run(args.batch_size, summarize=not args.no_summarize))


if __name__ == "__main__":
    sys.exit(main())
