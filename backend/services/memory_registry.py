"""
Registry of per-user MemoryManager instances.

Managers are created lazily and evicted least-recently-used once the registry
is full, or when idle past the configured timeout.
"""

import logging
import time
from collections import OrderedDict
from typing import Dict, List, Optional

from domain.memory import AgentMemory, ConsolidationResult
from llm.embeddings import EmbeddingService

from .memory_manager import MemoryManager, SessionFactory

logger = logging.getLogger("MemoryRegistry")


class MemoryManagerRegistry:
    """
    One MemoryManager per user, shared across requests.

    Args:
        session_factory: Session factory handed to every manager
        embedder: Shared embedding service (optional)
        max_users: Manager count above which the least recently used is evicted
        idle_seconds: Managers unused for this long are dropped by evict_idle()
        cache_ttl_seconds: Retrieval cache lifetime for each manager
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        embedder: Optional[EmbeddingService] = None,
        max_users: int = 1000,
        idle_seconds: float = 3600.0,
        cache_ttl_seconds: float = 300.0,
    ):
        self.session_factory = session_factory
        self.embedder = embedder
        self.max_users = max_users
        self.idle_seconds = idle_seconds
        self.cache_ttl_seconds = cache_ttl_seconds
        self._managers: "OrderedDict[str, MemoryManager]" = OrderedDict()

    def get(self, user_id: str) -> MemoryManager:
        """Get (or create) the manager for a user, marking it most recently used."""
        manager = self._managers.get(user_id)
        if manager is None:
            manager = MemoryManager(
                user_id,
                self.session_factory,
                embedder=self.embedder,
                cache_ttl_seconds=self.cache_ttl_seconds,
            )
            self._managers[user_id] = manager
            logger.debug(f"🧠 Created memory manager for user {user_id}")
            while len(self._managers) > self.max_users:
                evicted, _ = self._managers.popitem(last=False)
                logger.debug(f"♻️ Evicted memory manager for user {evicted} (registry full)")
        else:
            self._managers.move_to_end(user_id)
        manager.touch()
        return manager

    def peek(self, user_id: str) -> MemoryManager:
        """
        Get the registered manager for a user without marking it used.

        Unregistered users get a throwaway manager that is never added, so
        maintenance passes neither evict live managers nor keep idle ones alive.
        """
        manager = self._managers.get(user_id)
        if manager is not None:
            return manager
        return MemoryManager(
            user_id,
            self.session_factory,
            embedder=self.embedder,
            cache_ttl_seconds=self.cache_ttl_seconds,
        )

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._managers

    def __len__(self) -> int:
        return len(self._managers)

    def user_ids(self) -> List[str]:
        return list(self._managers.keys())

    def evict_idle(self, now: Optional[float] = None) -> int:
        """Drop managers unused for idle_seconds. Returns how many were dropped."""
        now = time.monotonic() if now is None else now
        idle = [uid for uid, m in self._managers.items() if now - m.last_used >= self.idle_seconds]
        for uid in idle:
            del self._managers[uid]
        if idle:
            logger.info(f"♻️ Evicted {len(idle)} idle memory manager(s)")
        return len(idle)

    def invalidate_caches(self) -> None:
        for manager in self._managers.values():
            manager.invalidate_cache()

    def cleanup_caches(self) -> int:
        """Purge expired retrieval-cache entries of every live manager."""
        return sum(m.cleanup_cache() for m in self._managers.values())

    def stats(self) -> Dict[str, int]:
        return {
            "managers": len(self._managers),
            "dimension_mismatches": sum(m.dimension_mismatches for m in self._managers.values()),
        }

    # Convenience entry points

    async def build_agent_memory(self, user_id: str, query_text: Optional[str] = None) -> AgentMemory:
        return await self.get(user_id).build_agent_memory(query_text)

    async def consolidate_memories(self, user_id: str) -> ConsolidationResult:
        return await self.peek(user_id).consolidate()

    async def decay_old_memories(self, user_id: str, days_threshold: Optional[int] = None) -> int:
        return await self.peek(user_id).apply_decay(days_threshold)
