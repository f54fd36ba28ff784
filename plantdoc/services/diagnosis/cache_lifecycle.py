import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from plantdoc.exceptions import PersistenceFailure
from plantdoc.services.diagnosis import DiagnosisCacheEntry
from plantdoc.services.redis_cache import acquire_lock, release_lock

logger = logging.getLogger(__name__)

SWEEP_LOCK_KEY = "plantdoc:diagnosis_cache:sweep"


class CacheLifecycleManager:
    """
    Owns every write to the diagnosis cache:
    - write-back of AI results with a TTL
    - hit counting
    - expiry sweep (single-flight per process, plus a Redis lock across instances)
    """

    def __init__(
        self,
        store,
        ttl_days: int = 90,
        redis_client=None,
        lock_ttl: int = 120,
    ):
        self.store = store
        self.ttl = timedelta(days=ttl_days)
        self.redis_client = redis_client
        self.lock_ttl = lock_ttl
        self._sweep_lock = asyncio.Lock()
        self._sweep_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Write-back
    # ------------------------------------------------------------------
    async def save_entry(
        self,
        normalized_description: str,
        symptom_ids: Iterable[str],
        disease_name: Optional[str],
        ai_response: str,
        plant_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> DiagnosisCacheEntry:
        now = now or datetime.now(timezone.utc)
        entry = DiagnosisCacheEntry(
            id=str(uuid.uuid4()),
            normalized_description=normalized_description,
            symptom_ids=sorted(symptom_ids),
            disease_name=disease_name,
            ai_response=ai_response,
            created_at=now,
            expires_at=now + self.ttl,
            plant_type=plant_type,
            hit_count=0,
        )
        # PersistenceFailure propagates to the caller
        return await self.store.create(entry)

    # ------------------------------------------------------------------
    # Hit counting
    # ------------------------------------------------------------------
    async def increment_hit_count(self, cache_id: str) -> bool:
        try:
            updated = await self.store.increment_hit_count(cache_id)
        except PersistenceFailure as e:
            logger.warning(f"Hit count increment failed for {cache_id}: {e}")
            return False
        if not updated:
            logger.info(f"Cache entry {cache_id} gone before hit count increment")
        return updated

    async def get_active_entries(self) -> List[DiagnosisCacheEntry]:
        return await self.store.get_active_entries()

    async def get_stats(self) -> Dict:
        entries = await self.store.get_active_entries()
        return {
            "active_entries": len(entries),
            "total_hits": sum(e.hit_count for e in entries),
            "ttl_days": self.ttl.days,
            "sweep_running": self._sweep_lock.locked(),
        }

    # ------------------------------------------------------------------
    # Expiry sweep
    # ------------------------------------------------------------------
    async def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        """Delete expired entries; overlapping calls return 0 without sweeping"""
        if self._sweep_lock.locked():
            logger.info("Cache sweep already running - skipped")
            return 0

        async with self._sweep_lock:
            token = None
            if self.redis_client:
                try:
                    token = acquire_lock(self.redis_client, SWEEP_LOCK_KEY, self.lock_ttl)
                except Exception as e:
                    logger.warning(f"⚠️ Redis sweep lock unavailable ({e}) - sweeping under in-process lock only")
                else:
                    if not token:
                        logger.info("Cache sweep held by another instance - skipped")
                        return 0
            try:
                removed = await self.store.cleanup_expired(now)
            finally:
                if token:
                    release_lock(self.redis_client, SWEEP_LOCK_KEY, token)

        if removed:
            logger.info(f"Cache cleanup: removed {removed} expired entries")
        return removed

    async def run_periodic_sweep(self, interval_seconds: int, stop_event: Optional[asyncio.Event] = None):
        """Sweep every interval until cancelled or stop_event is set"""
        while True:
            try:
                await asyncio.sleep(interval_seconds)
                logger.info("Running periodic cache cleanup...")
                await self.cleanup_expired()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in cache cleanup task: {e}")
            if stop_event and stop_event.is_set():
                break

    def start_background_sweep(self, interval_seconds: int) -> asyncio.Task:
        if self._sweep_task and not self._sweep_task.done():
            logger.info("Cache cleanup task already running")
            return self._sweep_task
        self._sweep_task = asyncio.create_task(self.run_periodic_sweep(interval_seconds))
        logger.info(f"Started cache cleanup task (interval={interval_seconds}s)")
        return self._sweep_task

    async def stop_background_sweep(self):
        task = self._sweep_task
        if not task:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        finally:
            self._sweep_task = None
            logger.info("Cache cleanup task stopped")
