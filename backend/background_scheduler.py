"""
Background scheduler for memory maintenance.

This module runs the periodic jobs that keep per-user memory healthy:
consolidation of near-duplicates, relevance decay of stale items, removal of
expired items, and eviction of idle memory managers.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List

import crud
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from services.memory_registry import MemoryManagerRegistry
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger("BackgroundScheduler")

# Suppress noisy APScheduler "max instances reached" warnings
logging.getLogger("apscheduler.scheduler").setLevel(logging.ERROR)


class BackgroundScheduler:
    """Manages background memory maintenance jobs."""

    def __init__(
        self,
        memory_registry: MemoryManagerRegistry,
        get_db_session,
        consolidation_interval_minutes: int = 60,
        decay_interval_hours: int = 24,
        decay_days_threshold: int = 30,
        expired_cleanup_interval_minutes: int = 30,
        max_concurrent_users: int = 5,
    ):
        self.scheduler = AsyncIOScheduler()
        self.memory_registry = memory_registry
        self.get_db_session = get_db_session
        self.consolidation_interval_minutes = consolidation_interval_minutes
        self.decay_interval_hours = decay_interval_hours
        self.decay_days_threshold = decay_days_threshold
        self.expired_cleanup_interval_minutes = expired_cleanup_interval_minutes
        self.max_concurrent_users = max_concurrent_users
        self.is_running = False

    def start(self):
        """Start the background scheduler."""
        if not self.is_running:
            self.scheduler.add_job(
                self._consolidate_all,
                "interval",
                minutes=self.consolidation_interval_minutes,
                id="consolidate_memories",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self.scheduler.add_job(
                self._decay_all,
                "interval",
                hours=self.decay_interval_hours,
                id="decay_memories",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            self.scheduler.add_job(
                self._cleanup_expired,
                "interval",
                minutes=self.expired_cleanup_interval_minutes,
                id="cleanup_expired_memories",
                replace_existing=True,
            )
            # Idle managers and stale cache entries, every 5 minutes
            self.scheduler.add_job(
                self._evict_idle_managers, "interval", minutes=5, id="evict_idle_managers", replace_existing=True
            )

            self.scheduler.start()
            self.is_running = True
            logger.info(
                f"🚀 Background scheduler started - consolidation every {self.consolidation_interval_minutes} min, "
                f"decay every {self.decay_interval_hours} h, expiry cleanup every "
                f"{self.expired_cleanup_interval_minutes} min"
            )

    def stop(self):
        """Stop the background scheduler."""
        if self.is_running:
            self.scheduler.shutdown()
            self.is_running = False
            logger.info("🛑 Background scheduler stopped")

    @asynccontextmanager
    async def _session_scope(self):
        session_gen = self.get_db_session()
        session = await anext(session_gen)
        try:
            yield session
        finally:
            try:
                await session_gen.aclose()
            except Exception as e:
                logger.error(f"Error closing database session: {e}")

    async def _get_memory_users(self, db: AsyncSession) -> List[str]:
        return await crud.list_memory_user_ids(db)

    async def _for_each_user(self, job_name: str, action) -> int:
        """
        Run action(user_id) for every user with memories, a few at a time.

        A failure for one user is logged and does not stop the others.

        Returns:
            Sum of the per-user results
        """
        async with self._session_scope() as db:
            user_ids = await self._get_memory_users(db)

        if not user_ids:
            return 0

        semaphore = asyncio.Semaphore(self.max_concurrent_users) if self.max_concurrent_users else None

        async def run_with_error_handling(user_id: str) -> int:
            try:
                if semaphore:
                    async with semaphore:
                        return await action(user_id)
                return await action(user_id)
            except Exception as e:
                logger.error(f"❌ {job_name} failed for user {user_id}: {e}")
                return 0

        results = await asyncio.gather(*[run_with_error_handling(uid) for uid in user_ids])
        return sum(results)

    async def _consolidate_all(self):
        """Merge near-duplicate memories for every user."""
        try:

            async def consolidate(user_id: str) -> int:
                result = await self.memory_registry.consolidate_memories(user_id)
                return result.removed

            removed = await self._for_each_user("Consolidation", consolidate)
            if removed:
                logger.info(f"🔗 Consolidation removed {removed} duplicate memories")
        except Exception as e:
            logger.error(f"💥 Error in _consolidate_all: {e}", exc_info=True)

    async def _decay_all(self):
        """Decay relevance of stale memories for every user."""
        try:

            async def decay(user_id: str) -> int:
                return await self.memory_registry.decay_old_memories(user_id, self.decay_days_threshold)

            decayed = await self._for_each_user("Decay", decay)
            logger.info(f"📉 Decay pass complete: {decayed} memories decayed")
        except Exception as e:
            logger.error(f"💥 Error in _decay_all: {e}", exc_info=True)

    async def _cleanup_expired(self):
        """Delete memories whose expiry has passed, across all users."""
        try:
            async with self._session_scope() as db:
                removed = await crud.delete_expired_memories(db)
            if removed:
                # Cached retrievals may still hold the deleted rows
                self.memory_registry.invalidate_caches()
                logger.info(f"🧹 Removed {removed} expired memories")
        except Exception as e:
            logger.error(f"Error during expired memory cleanup: {e}")

    async def _evict_idle_managers(self):
        """Drop idle memory managers and purge expired cache entries."""
        try:
            evicted = self.memory_registry.evict_idle()
            purged = self.memory_registry.cleanup_caches()
            stats = self.memory_registry.stats()
            logger.debug(
                f"♻️ Memory registry: {stats['managers']} managers, {evicted} evicted, {purged} cache entries purged"
            )
        except Exception as e:
            logger.error(f"Error during memory manager eviction: {e}")
