"""
Unit tests for Pydantic schemas.

Tests schema validation, serialization, and field transformations.
"""

from datetime import datetime, timedelta, timezone

import pytest
import schemas
from domain.crew import CrewExecution
from domain.enums import AgentRole, CrewWorkflow, MemoryType, TaskStatus
from domain.memory import MemoryItem, ScoredMemory
from domain.responses import AgentResponse, ResponseMetadata
from pydantic import ValidationError


def memory_item(**overrides):
    now = datetime(2024, 5, 1, 12, 0, 0)
    data = {
        "id": "mem-1",
        "type": MemoryType.FACT,
        "content": "Our budget is 5000 dollars",
        "source": AgentRole.SALES,
        "relevance": 0.6,
        "created_at": now,
        "updated_at": now,
    }
    data.update(overrides)
    return MemoryItem(**data)


class TestChatSchemas:
    """Tests for chat and routing schemas."""

    @pytest.mark.unit
    def test_chat_request_defaults(self):
        """Test ChatRequest default values."""
        request = schemas.ChatRequest(query="hello")

        assert request.history == []
        assert request.crew is None
        assert request.use_memory is True
        assert request.learn is True

    @pytest.mark.unit
    def test_chat_request_rejects_empty_query(self):
        """Test ChatRequest requires a non-empty query."""
        with pytest.raises(ValidationError):
            schemas.ChatRequest(query="")

    @pytest.mark.unit
    def test_history_roles_are_validated(self):
        """Test ChatMessage only accepts known roles."""
        message = schemas.ChatMessage(role="assistant", content="hi", agent_id="sales-agent")
        assert message.role.value == "assistant"

        with pytest.raises(ValidationError):
            schemas.ChatMessage(role="narrator", content="hi")

    @pytest.mark.unit
    def test_chat_response_build(self):
        """Test ChatResponse carries the answer and an execution summary."""
        execution = CrewExecution(crew_name="full", workflow=CrewWorkflow.HIERARCHICAL)
        task = execution.add_task("q", AgentRole.SALES)
        task.start()
        response = AgentResponse(
            content="Pipeline looks strong.",
            agent_id="sales-agent",
            agent_role=AgentRole.SALES,
            tools_used=["crm_list_deals"],
            metadata=ResponseMetadata(model="gpt-4o-mini", latency=12.5),
        )
        task.complete(response)
        execution.complete(response)

        chat = schemas.ChatResponse.build(response, "conv-1", execution)
        data = chat.model_dump(mode="json")

        assert data["content"] == "Pipeline looks strong."
        assert data["agent_role"] == "sales"
        assert data["tools_used"] == ["crm_list_deals"]
        assert data["metadata"]["model"] == "gpt-4o-mini"
        assert data["conversation_id"] == "conv-1"
        assert data["execution"]["status"] == "completed"
        assert data["execution"]["tasks"][0]["assigned_agent"] == "sales"
        assert data["execution"]["tasks"][0]["status"] == TaskStatus.COMPLETED.value


class TestMemorySchemas:
    """Tests for memory schemas."""

    @pytest.mark.unit
    def test_from_item_hides_embedding(self):
        """Test the vector never leaves the service, only its presence."""
        memory = schemas.Memory.from_item(memory_item(embedding=[0.1, 0.2]))
        data = memory.model_dump(mode="json")

        assert "embedding" not in data
        assert data["has_embedding"] is True
        assert data["source"] == "sales"

    @pytest.mark.unit
    def test_datetimes_serialize_as_utc(self):
        """Test naive stored timestamps are emitted timezone-aware."""
        expires = datetime(2024, 6, 1, 0, 0, 0)
        data = schemas.Memory.from_item(memory_item(expires_at=expires)).model_dump()

        assert data["created_at"].tzinfo == timezone.utc
        assert data["expires_at"] == expires.replace(tzinfo=timezone.utc)

    @pytest.mark.unit
    def test_aware_datetimes_unchanged(self):
        """Test aware timestamps pass through."""
        aware = datetime(2024, 5, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        data = schemas.Memory.from_item(memory_item(created_at=aware)).model_dump()

        assert data["created_at"] == aware
        assert data["expires_at"] is None

    @pytest.mark.unit
    def test_scored_memory(self):
        """Test scored results keep their similarity."""
        scored = ScoredMemory(**memory_item().model_dump(), similarity=0.83)
        out = schemas.ScoredMemoryOut.from_scored(scored)

        assert out.similarity == pytest.approx(0.83)
        assert out.has_embedding is True

    @pytest.mark.unit
    def test_create_request_bounds(self):
        """Test relevance and type are validated."""
        request = schemas.MemoryCreateRequest(type="preference", content="Prefers EUR")
        assert request.relevance == pytest.approx(0.5)
        assert request.source == AgentRole.GENERAL

        with pytest.raises(ValidationError):
            schemas.MemoryCreateRequest(type="preference", content="x", relevance=1.5)
        with pytest.raises(ValidationError):
            schemas.MemoryCreateRequest(type="rumour", content="x")

    @pytest.mark.unit
    def test_relevance_delta_bounds(self):
        """Test a relevance delta must lie within [-1, 1]."""
        assert schemas.RelevanceUpdate(delta=-0.4).delta == pytest.approx(-0.4)
        with pytest.raises(ValidationError):
            schemas.RelevanceUpdate(delta=2)

    @pytest.mark.unit
    def test_decay_request_defaults(self):
        """Test decay defaults to 30 days and the configured factor."""
        request = schemas.DecayRequest()
        assert request.days_threshold == 30
        assert request.decay_factor is None


class TestExecutionRecordSchemas:
    """Tests for persisted execution records."""

    @pytest.mark.unit
    def test_from_attributes(self):
        """Test records validate from ORM-like objects."""

        class Row:
            id = "exec-1"
            conversation_id = "conv-1"
            crew_name = "full"
            workflow = "parallel"
            status = "completed"
            final_agent_role = "general"
            started_at = datetime(2024, 5, 1, 12, 0, 0)
            ended_at = None
            tasks = []

        record = schemas.CrewExecutionRecord.model_validate(Row())
        data = record.model_dump()

        assert data["started_at"].tzinfo == timezone.utc
        assert data["ended_at"] is None
        assert data["tasks"] == []
