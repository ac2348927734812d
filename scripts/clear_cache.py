#!/usr/bin/env python3
"""
Persistent Cache Cleanup

Removes expired rows from the cache tables. With ``--all`` every row is
removed; ``--force`` skips the confirmation prompt for ``--all``.

    python scripts/clear_cache.py
    python scripts/clear_cache.py --all --force
"""
import asyncio
import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.cache.service import utcnow
from core.cache.store import SqlAlchemyCacheStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def clear_cache(session_maker, *, purge_all: bool = False) -> int:
    store = SqlAlchemyCacheStore(session_maker)
    if purge_all:
        return await store.delete_all()
    return await store.delete_expired(now=utcnow())


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    purge_all = "--all" in argv

    from app.db import AsyncSessionLocal

    if purge_all and "--force" not in argv:
        confirm = input("Are you sure you want to delete every persistent cache entry? (y/n): ")
        if confirm.lower() != 'y':
            print("Operation cancelled.")
            return 0

    try:
        removed = asyncio.run(clear_cache(AsyncSessionLocal, purge_all=purge_all))
    except Exception as e:
        logger.error(f"Cache cleanup failed: {str(e)}", exc_info=True)
        return 1

    scope = "all" if purge_all else "expired"
    logger.info(f"Cache cleanup completed: {removed} {scope} entries removed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
