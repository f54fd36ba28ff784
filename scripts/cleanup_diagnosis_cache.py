"""
Run one diagnosis cache expiry sweep (for cron on serverless deployments)

    python scripts/cleanup_diagnosis_cache.py
"""
import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from plantdoc.dependencies import build_engine


async def cleanup_cache():
    print("=" * 60)
    print("Diagnosis cache cleanup")
    print("=" * 60)

    engine = await build_engine()
    if not engine.supabase_client:
        print("Supabase not configured - in-memory cache has nothing to sweep")
        return 0

    removed = await engine.lifecycle.cleanup_expired()
    stats = await engine.lifecycle.get_stats()
    print(f"  Removed: {removed} expired entries")
    print(f"  Active:  {stats['active_entries']} entries, {stats['total_hits']} hits")
    return removed


if __name__ == "__main__":
    asyncio.run(cleanup_cache())
