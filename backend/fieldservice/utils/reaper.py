"""
Fleet-wide sweep of abandoned photo uploads.

Create-photo already reaps stale pending records for the visit it touches;
this sweep covers visits nobody touches again.

Usage:
  python -m fieldservice.utils.reaper [minutes]
"""

import asyncio
import sys

from ..database import engine, async_session
from ..logging_config import setup_logging
from ..services.storage_service import PhotoStorage, get_storage
from ..services.visit_photo_service import STALE_PENDING_MINUTES, reap_stale_pending


async def sweep(minutes: int = STALE_PENDING_MINUTES, storage: PhotoStorage | None = None) -> int:
    """Delete every pending photo older than ``minutes``; return how many."""
    storage = storage or get_storage()
    async with async_session() as db:
        reaped = await reap_stale_pending(db, storage, None, None, minutes)
    return len(reaped)


async def main(minutes: int):
    setup_logging()
    try:
        count = await sweep(minutes)
        print(f"Reaped {count} stale pending photo(s) older than {minutes} minutes.")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    minutes = int(sys.argv[1]) if len(sys.argv) > 1 else STALE_PENDING_MINUTES
    if minutes < 1:
        print("Usage: python -m fieldservice.utils.reaper [minutes>=1]")
        sys.exit(1)
    asyncio.run(main(minutes))
