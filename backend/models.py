from datetime import datetime

from database import Base
from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship


class AgentMemoryRecord(Base):
    __tablename__ = "agent_memories"
    __table_args__ = (
        Index("ix_agent_memories_user_type", "user_id", "type"),
        Index("ix_agent_memories_user_relevance", "user_id", "relevance"),
        Index("ix_agent_memories_user_created", "user_id", "created_at"),
    )

    id = Column(String, primary_key=True)  # "mem-<hex>"
    user_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)  # fact | preference | context | decision | outcome
    content = Column(Text, nullable=False)
    source = Column(String, nullable=False, default="general")  # AgentRole that produced it
    relevance = Column(Float, nullable=False, default=0.5)
    # "metadata" is reserved on declarative classes
    extra_metadata = Column("metadata", JSON, nullable=False, default=dict)
    embedding = Column(JSON(none_as_null=True), nullable=True)  # Serialized vector; cosine computed in application code
    embedding_model = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)


class CrewExecutionRecord(Base):
    __tablename__ = "crew_executions"
    __table_args__ = (Index("ix_crew_executions_user_started", "user_id", "started_at"),)

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    conversation_id = Column(String, nullable=True, index=True)
    crew_name = Column(String, nullable=False)
    workflow = Column(String, nullable=False)
    status = Column(String, nullable=False)  # running | completed | failed
    final_agent_role = Column(String, nullable=True)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)

    tasks = relationship(
        "CrewTaskRecord",
        back_populates="execution",
        cascade="all, delete-orphan",
        order_by="CrewTaskRecord.position",
    )


class CrewTaskRecord(Base):
    __tablename__ = "crew_tasks"

    id = Column(String, primary_key=True)
    execution_id = Column(String, ForeignKey("crew_executions.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)  # Order the task was appended
    description = Column(Text, nullable=False)
    assigned_agent = Column(String, nullable=False)
    status = Column(String, nullable=False)  # pending | running | completed | failed
    result = Column(Text, nullable=True)  # Final content of the agent's response
    error = Column(Text, nullable=True)

    execution = relationship("CrewExecutionRecord", back_populates="tasks")
