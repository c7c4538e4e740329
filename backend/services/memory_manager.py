"""
Per-user memory manager.

Stores, retrieves, scores, consolidates and decays one user's memory items.
Memory is an enhancement rather than a dependency of correctness, so every
persistence or embedding failure is logged and degraded (empty result, item
stored without a vector) instead of raised.
"""

import logging
import math
import time
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import crud
from config.memory import get_extraction_settings, get_memory_section, get_stopwords
from domain.contexts import AgentMessage
from domain.enums import AgentRole, MemoryType
from domain.memory import (
    AgentMemory,
    ConsolidationResult,
    MemoryCreate,
    MemoryItem,
    MemorySearchOptions,
    MemoryTypeStats,
    ScoredMemory,
)
from infrastructure.cache import TTLCache
from llm.embeddings import EmbeddingService
from sqlalchemy.ext.asyncio import AsyncSession

from .extraction import MemoryExtractor
from .similarity import cosine_similarity, extract_keywords, jaccard_similarity

logger = logging.getLogger("MemoryManager")

SessionFactory = Callable[[], AsyncSession]


def new_memory_id() -> str:
    return f"mem-{uuid.uuid4().hex}"


class MemoryManager:
    """
    Memory operations for one user.

    Args:
        user_id: Owner of every item this manager touches
        session_factory: async_sessionmaker (or compatible) producing sessions
        embedder: Embedding service; without one, only keyword retrieval works
        cache_ttl_seconds: Lifetime of read-through retrieve() results
        extractor: Pattern extractor for learning from conversations
    """

    def __init__(
        self,
        user_id: str,
        session_factory: SessionFactory,
        embedder: Optional[EmbeddingService] = None,
        cache_ttl_seconds: float = 300.0,
        extractor: Optional[MemoryExtractor] = None,
    ):
        self.user_id = user_id
        self.session_factory = session_factory
        self.embedder = embedder
        self.extractor = extractor or MemoryExtractor()
        self._cache = TTLCache(ttl_seconds=cache_ttl_seconds)
        self.dimension_mismatches = 0
        self.last_used = time.monotonic()

    def touch(self) -> None:
        self.last_used = time.monotonic()

    def invalidate_cache(self) -> None:
        self._cache.clear()

    def cleanup_cache(self) -> int:
        purged = self._cache.cleanup_expired()
        self._cache.log_stats(f"memory cache for user {self.user_id}")
        return purged

    # =========================================================================
    # Storage
    # =========================================================================

    async def _embed(self, text: str) -> Optional[List[float]]:
        """Embed text, returning None (logged) on failure or a wrong-sized vector."""
        if self.embedder is None:
            return None
        try:
            vector = await self.embedder.embed(text)
        except Exception as e:
            logger.warning(f"⚠️ Embedding failed for user {self.user_id}, falling back to keyword-only: {e}")
            return None
        if len(vector) != self.embedder.dimension:
            logger.warning(
                f"⚠️ Embedding has {len(vector)} dimensions, expected {self.embedder.dimension}; storing without vector"
            )
            return None
        return vector

    async def store(self, item: MemoryCreate, generate_embedding: bool = True) -> Optional[MemoryItem]:
        """
        Persist a memory item.

        Content longer than the configured minimum is embedded when
        generate_embedding is set; an embedding failure stores the item without
        a vector.

        Returns:
            The stored item, or None if persistence failed
        """
        embedding = None
        min_chars = get_memory_section("retrieval")["embed_min_chars"]
        if generate_embedding and len(item.content) >= min_chars:
            embedding = await self._embed(item.content)

        model_name = self.embedder.model if (embedding and self.embedder) else None
        try:
            async with self.session_factory() as db:
                record = await crud.create_memory(db, self.user_id, new_memory_id(), item, embedding, model_name)
                stored = crud.record_to_memory_item(record)
        except Exception as e:
            logger.error(f"❌ Failed to store memory for user {self.user_id}: {e}")
            return None
        finally:
            self.invalidate_cache()

        logger.debug(f"💾 Stored {item.type} memory {stored.id} (embedded={embedding is not None})")
        return stored

    # =========================================================================
    # Retrieval
    # =========================================================================

    async def semantic_search(
        self,
        query_text: str,
        limit: Optional[int] = None,
        min_similarity: Optional[float] = None,
    ) -> List[ScoredMemory]:
        """
        Rank the user's most recent embedded items by cosine similarity to the query.

        Items whose stored vector has the wrong dimensionality are skipped and
        counted in dimension_mismatches.

        Returns:
            Items at or above min_similarity, most similar first
        """
        section = get_memory_section("retrieval")
        limit = limit or section["semantic_default_limit"]
        min_similarity = section["semantic_min_similarity"] if min_similarity is None else min_similarity

        if self.embedder is None or not query_text.strip():
            return []

        query_vector = await self._embed(query_text)
        if query_vector is None:
            return []

        try:
            async with self.session_factory() as db:
                records = await crud.get_recent_embedded_memories(db, self.user_id, section["semantic_candidate_pool"])
                candidates = [crud.record_to_memory_item(r) for r in records]
        except Exception as e:
            logger.error(f"❌ Semantic search failed for user {self.user_id}: {e}")
            return []

        scored: List[ScoredMemory] = []
        skipped = 0
        for item in candidates:
            if not item.embedding or len(item.embedding) != len(query_vector):
                skipped += 1
                continue
            similarity = cosine_similarity(query_vector, item.embedding)
            if similarity >= min_similarity:
                scored.append(ScoredMemory(**item.model_dump(exclude={"embedding"}), similarity=similarity))

        if skipped:
            self.dimension_mismatches += skipped
            logger.warning(
                f"⚠️ Skipped {skipped} memories with mismatched embedding dimensions for user {self.user_id} "
                f"(total {self.dimension_mismatches})"
            )

        scored.sort(key=lambda m: m.similarity, reverse=True)
        return scored[:limit]

    async def retrieve(self, options: Optional[MemorySearchOptions] = None) -> List[MemoryItem]:
        """
        Structured keyword retrieval, read-through cached per option set.

        Returns:
            Matching items (relevance desc, then newest first), or [] on failure
        """
        options = options or MemorySearchOptions()
        key = options.cache_key()
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        try:
            async with self.session_factory() as db:
                records = await crud.query_memories(db, self.user_id, options)
                items = [crud.record_to_memory_item(r) for r in records]
        except Exception as e:
            logger.error(f"❌ Failed to retrieve memories for user {self.user_id}: {e}")
            return []

        self._cache.set(key, items)
        return list(items)

    async def get_relevant(self, query_text: str, limit: int = 10) -> List[MemoryItem]:
        """
        Hybrid retrieval: semantic search for half the budget plus keyword search.

        Results are deduplicated by id, sorted by relevance and truncated to limit.
        """
        section = get_memory_section("retrieval")
        semantic = await self.semantic_search(
            query_text, limit=math.ceil(limit / 2), min_similarity=section["hybrid_min_similarity"]
        )

        keywords = extract_keywords(
            query_text,
            get_stopwords(),
            min_length=section["min_keyword_length"],
            max_keywords=section["max_keywords"],
        )
        keyword_results: List[MemoryItem] = []
        for keyword in keywords[: section["hybrid_max_keywords"]]:
            keyword_results.extend(
                await self.retrieve(MemorySearchOptions(query=keyword, limit=math.ceil(limit / 3)))
            )

        unique: Dict[str, MemoryItem] = {}
        for item in [*semantic, *keyword_results]:
            existing = unique.get(item.id)
            if existing is None or item.relevance > existing.relevance:
                unique[item.id] = item

        merged = sorted(unique.values(), key=lambda m: m.relevance, reverse=True)
        logger.debug(
            f"🔎 Hybrid search: {len(semantic)} semantic + {len(keyword_results)} keyword = {len(merged)} unique"
        )
        return merged[:limit]

    async def get(self, memory_id: str) -> Optional[MemoryItem]:
        try:
            async with self.session_factory() as db:
                record = await crud.get_memory(db, self.user_id, memory_id)
                return crud.record_to_memory_item(record) if record else None
        except Exception as e:
            logger.error(f"❌ Failed to load memory {memory_id}: {e}")
            return None

    async def list_memories(self, options: MemorySearchOptions) -> Tuple[List[MemoryItem], int]:
        """Uncached page of items plus the total matching count."""
        try:
            async with self.session_factory() as db:
                records = await crud.query_memories(db, self.user_id, options)
                total = await crud.count_memories(db, self.user_id, options)
                return [crud.record_to_memory_item(r) for r in records], total
        except Exception as e:
            logger.error(f"❌ Failed to list memories for user {self.user_id}: {e}")
            return [], 0

    async def stats(self) -> List[MemoryTypeStats]:
        try:
            async with self.session_factory() as db:
                rows = await crud.get_memory_stats(db, self.user_id)
        except Exception as e:
            logger.error(f"❌ Failed to compute memory stats for user {self.user_id}: {e}")
            return []
        return [MemoryTypeStats(type=MemoryType(t), count=c, avg_relevance=avg) for t, c, avg in rows]

    # =========================================================================
    # Mutation
    # =========================================================================

    async def update_relevance(self, memory_id: str, delta: float) -> Optional[float]:
        """
        Shift an item's relevance by delta, clamped to [0, 1].

        Returns:
            The new relevance, or None if the item is missing or the update failed
        """
        try:
            async with self.session_factory() as db:
                return await crud.update_memory_relevance(db, self.user_id, memory_id, delta)
        except Exception as e:
            logger.error(f"❌ Failed to update relevance of {memory_id}: {e}")
            return None
        finally:
            self.invalidate_cache()

    async def delete(self, memory_id: str) -> bool:
        try:
            async with self.session_factory() as db:
                return await crud.delete_memories(db, self.user_id, [memory_id]) > 0
        except Exception as e:
            logger.error(f"❌ Failed to delete memory {memory_id}: {e}")
            return False
        finally:
            self.invalidate_cache()

    async def clear_all(self, memory_type: Optional[MemoryType] = None) -> int:
        """Delete every item (optionally of one type). Returns the number removed."""
        try:
            async with self.session_factory() as db:
                removed = await crud.delete_all_memories(db, self.user_id, memory_type.value if memory_type else None)
        except Exception as e:
            logger.error(f"❌ Failed to clear memories for user {self.user_id}: {e}")
            return 0
        finally:
            self.invalidate_cache()
        logger.info(f"🧹 Cleared {removed} memories for user {self.user_id}")
        return removed

    async def cleanup_expired(self) -> int:
        try:
            async with self.session_factory() as db:
                removed = await crud.delete_expired_memories(db, user_id=self.user_id)
        except Exception as e:
            logger.error(f"❌ Failed to remove expired memories for user {self.user_id}: {e}")
            return 0
        finally:
            self.invalidate_cache()
        return removed

    # =========================================================================
    # Maintenance
    # =========================================================================

    async def consolidate(self) -> ConsolidationResult:
        """
        Merge near-duplicate items.

        Each unprocessed item collects every later unprocessed item whose
        Jaccard word similarity exceeds the threshold. In each group the most
        relevant item survives with a relevance boost per merged item; the
        others are deleted.
        """
        section = get_memory_section("consolidation")
        try:
            async with self.session_factory() as db:
                records = await crud.query_memories(
                    db, self.user_id, MemorySearchOptions(limit=section["batch_limit"])
                )
                memories = [crud.record_to_memory_item(r) for r in records]
        except Exception as e:
            logger.error(f"❌ Consolidation failed to load memories for user {self.user_id}: {e}")
            return ConsolidationResult()

        if len(memories) < 2:
            return ConsolidationResult()

        threshold = section["similarity_threshold"]
        processed = set()
        boosts: List[Tuple[str, int]] = []
        to_remove: List[str] = []

        for i, anchor in enumerate(memories):
            if anchor.id in processed:
                continue
            similar = []
            for other in memories[i + 1 :]:
                if other.id in processed:
                    continue
                if jaccard_similarity(anchor.content, other.content) > threshold:
                    similar.append(other)
                    processed.add(other.id)
            processed.add(anchor.id)

            if similar:
                group = sorted([anchor, *similar], key=lambda m: m.relevance, reverse=True)
                keeper, duplicates = group[0], group[1:]
                boosts.append((keeper.id, len(duplicates)))
                to_remove.extend(m.id for m in duplicates)

        if not to_remove:
            return ConsolidationResult()

        try:
            async with self.session_factory() as db:
                for keeper_id, merged_count in boosts:
                    await crud.update_memory_relevance(
                        db, self.user_id, keeper_id, section["boost_per_merged"] * merged_count
                    )
                removed = await crud.delete_memories(db, self.user_id, to_remove)
        except Exception as e:
            logger.error(f"❌ Consolidation failed to write for user {self.user_id}: {e}")
            return ConsolidationResult()
        finally:
            self.invalidate_cache()

        logger.info(f"🔗 Consolidated {removed} memories into {len(boosts)} for user {self.user_id}")
        return ConsolidationResult(merged=removed, removed=removed)

    async def apply_decay(self, days_threshold: Optional[int] = None, decay_factor: Optional[float] = None) -> int:
        """
        Lower the relevance of items not updated within days_threshold days.

        Relevance never drops below the configured floor by this path.

        Returns:
            Number of items decayed
        """
        section = get_memory_section("decay")
        days_threshold = section["days_threshold"] if days_threshold is None else days_threshold
        decay_factor = section["factor"] if decay_factor is None else decay_factor
        stale_before = datetime.utcnow() - timedelta(days=days_threshold)

        try:
            async with self.session_factory() as db:
                affected = await crud.decay_memories(db, self.user_id, stale_before, decay_factor, section["floor"])
        except Exception as e:
            logger.error(f"❌ Decay failed for user {self.user_id}: {e}")
            return 0
        finally:
            self.invalidate_cache()

        if affected:
            logger.info(f"📉 Decay applied to {affected} memories for user {self.user_id}")
        return affected

    # =========================================================================
    # Learning and context assembly
    # =========================================================================

    async def extract_from_conversation(self, messages: Sequence[AgentMessage], agent_role: AgentRole) -> int:
        """
        Store facts, preferences and decisions found in the conversation.

        Consolidates right away when a burst of items was extracted.

        Returns:
            Number of items stored
        """
        items = self.extractor.extract(messages, agent_role)
        stored = 0
        for item in items:
            if await self.store(item) is not None:
                stored += 1

        if stored > get_extraction_settings()["consolidate_above"]:
            await self.consolidate()

        if stored:
            logger.info(f"🧠 Learned {stored} memories for user {self.user_id} from {agent_role} conversation")
        return stored

    async def build_agent_memory(self, query_text: Optional[str] = None) -> AgentMemory:
        """
        Assemble the memory handed to agents.

        short_term: most recent items above the short-term relevance floor.
        long_term: hybrid-relevant items for the query, or the most relevant
        items overall when there is no query.
        """
        section = get_memory_section("agent_memory")
        short_term = await self.retrieve(
            MemorySearchOptions(
                limit=section["short_term_limit"],
                min_relevance=section["short_term_min_relevance"],
                order_by="recent",
            )
        )
        if query_text:
            long_term = await self.get_relevant(query_text, section["long_term_limit"])
        else:
            long_term = await self.retrieve(
                MemorySearchOptions(
                    limit=section["long_term_limit"],
                    min_relevance=section["long_term_min_relevance"],
                )
            )
        return AgentMemory(short_term=short_term, long_term=long_term, working_memory={})
