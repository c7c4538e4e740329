"""
Background learning queue.

After a crew answers, the exchange is handed to this queue and memory
extraction runs off the request path. Failures are logged and dropped; a full
queue drops the job instead of blocking the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from domain.contexts import AgentMessage
from domain.enums import AgentRole
from services.memory_registry import MemoryManagerRegistry

logger = logging.getLogger("LearningQueue")


@dataclass
class LearningJob:
    user_id: str
    messages: List[AgentMessage]
    agent_role: AgentRole = AgentRole.GENERAL
    conversation_id: Optional[str] = None


@dataclass
class LearningStats:
    submitted: int = 0
    processed: int = 0
    failed: int = 0
    dropped: int = 0
    stored: int = 0


class LearningQueue:
    """
    Bounded queue drained by a fixed number of worker tasks.

    Args:
        memory_registry: Registry providing each user's MemoryManager
        maxsize: Queue capacity; submissions beyond it are dropped
        workers: Number of concurrent worker tasks
    """

    def __init__(self, memory_registry: MemoryManagerRegistry, maxsize: int = 100, workers: int = 1):
        self.memory_registry = memory_registry
        self.maxsize = maxsize
        self.worker_count = max(1, workers)
        self.stats = LearningStats()
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        if self._workers:
            return
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"learning-worker-{i}") for i in range(self.worker_count)
        ]
        logger.info(f"🎓 Learning queue started with {self.worker_count} worker(s)")

    async def stop(self) -> None:
        """Cancel workers. Jobs still queued are discarded."""
        for task in self._workers:
            task.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info("🎓 Learning queue stopped")

    def submit(self, job: LearningJob) -> bool:
        """
        Enqueue a job without waiting.

        Returns:
            False if the queue is not running or full (the job is dropped)
        """
        if self._queue is None:
            logger.warning("⚠️ Learning queue not running, dropping job")
            self.stats.dropped += 1
            return False
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.warning(f"⚠️ Learning queue full, dropping job for user {job.user_id}")
            self.stats.dropped += 1
            return False
        self.stats.submitted += 1
        return True

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def process(self, job: LearningJob) -> int:
        manager = self.memory_registry.get(job.user_id)
        return await manager.extract_from_conversation(job.messages, job.agent_role)

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                stored = await self.process(job)
                self.stats.processed += 1
                self.stats.stored += stored
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.stats.failed += 1
                logger.error(f"❌ Learning failed for user {job.user_id}: {e}")
            finally:
                self._queue.task_done()
