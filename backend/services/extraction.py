"""
Pattern-based memory extraction.

Facts, preferences and decisions are pulled out of conversation messages with
the regex tables in memory.yaml. The tables are literal and inspectable on
purpose; tune them there rather than here.
"""

import logging
from typing import List, Optional, Sequence

from config.memory import ExtractionFamily, get_extraction_families, get_extraction_settings
from domain.contexts import AgentMessage
from domain.enums import AgentRole, MessageRole
from domain.memory import MemoryCreate

logger = logging.getLogger("MemoryExtractor")


class MemoryExtractor:
    """
    Turns conversation messages into typed memory items.

    Args:
        families: Pattern families; defaults to memory.yaml
        min_message_length: Messages of this length or shorter are skipped
        max_match_length: Matches must be shorter than this to be kept
    """

    def __init__(
        self,
        families: Optional[List[ExtractionFamily]] = None,
        min_message_length: Optional[int] = None,
        max_match_length: Optional[int] = None,
    ):
        settings = get_extraction_settings()
        self.families = families if families is not None else get_extraction_families()
        self.min_message_length = min_message_length or settings["min_message_length"]
        self.max_match_length = max_match_length or settings["max_match_length"]

    def extract_from_text(self, text: str, source: AgentRole, message_role: str = "user") -> List[MemoryCreate]:
        """
        Run every family over one text.

        Returns:
            Memory items, at most max_per_message per family
        """
        if len(text) <= self.min_message_length:
            return []

        items: List[MemoryCreate] = []
        for family in self.families:
            found: List[str] = []
            for pattern in family.patterns:
                for match in pattern.finditer(text):
                    snippet = match.group(0).strip()
                    if snippet and len(snippet) < self.max_match_length and snippet not in found:
                        found.append(snippet)
            for snippet in found[: family.max_per_message]:
                items.append(
                    MemoryCreate(
                        type=family.type,
                        content=snippet,
                        source=source,
                        relevance=family.relevance,
                        metadata={"extracted": True, "message_role": message_role},
                    )
                )
        return items

    def extract(self, messages: Sequence[AgentMessage], agent_role: AgentRole) -> List[MemoryCreate]:
        """
        Extract memory items from a conversation.

        System and tool messages are ignored.

        Args:
            messages: Conversation messages in order
            agent_role: Agent that handled the conversation (recorded as source)
        """
        items: List[MemoryCreate] = []
        for message in messages:
            if message.role not in (MessageRole.USER, MessageRole.ASSISTANT):
                continue
            items.extend(self.extract_from_text(message.content, agent_role, message.role.value))
        if items:
            logger.debug(f"🧩 Extracted {len(items)} memory item(s) from {len(messages)} message(s)")
        return items
