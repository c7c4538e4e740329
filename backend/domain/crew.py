"""
Crew configuration and execution bookkeeping.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from exceptions import InvalidTaskTransitionError

from .enums import AgentRole, CrewWorkflow, ExecutionStatus, TaskStatus
from .responses import AgentResponse

_ALLOWED_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.RUNNING},
    TaskStatus.RUNNING: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass
class CrewConfig:
    """
    Named crew preset.

    Attributes:
        name: Preset name (e.g. "sales_team")
        description: Human-readable purpose
        agents: Roles the crew instantiates
        workflow: Strategy used on the multi-agent path
    """

    name: str
    description: str
    agents: List[AgentRole]
    workflow: CrewWorkflow


@dataclass
class CrewTask:
    """
    One agent invocation inside an execution.

    Attributes:
        description: What the agent was asked to do
        assigned_agent: Role that runs the task
        status: pending -> running -> completed | failed
        result: Response on success
        error: Error message on failure
    """

    description: str
    assigned_agent: AgentRole
    id: str = field(default_factory=lambda: _new_id("task"))
    status: TaskStatus = TaskStatus.PENDING
    result: Optional[AgentResponse] = None
    error: Optional[str] = None

    def _transition(self, target: TaskStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTaskTransitionError(self.id, self.status.value, target.value)
        self.status = target

    def start(self) -> None:
        self._transition(TaskStatus.RUNNING)

    def complete(self, result: AgentResponse) -> None:
        self._transition(TaskStatus.COMPLETED)
        self.result = result

    def fail(self, error: str) -> None:
        self._transition(TaskStatus.FAILED)
        self.error = error


@dataclass
class CrewExecution:
    """
    Record of one crew process() call. Tasks are only appended, never removed.

    Attributes:
        crew_name: Preset that ran
        workflow: Strategy configured on the crew
        tasks: Tasks in the order they were created
        start_time: When the call began
        end_time: When the call reached a terminal state
        status: running -> completed | failed
        final_response: Combined response on success
    """

    crew_name: str
    workflow: CrewWorkflow
    id: str = field(default_factory=lambda: _new_id("exec"))
    tasks: List[CrewTask] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.utcnow)
    end_time: Optional[datetime] = None
    status: ExecutionStatus = ExecutionStatus.RUNNING
    final_response: Optional[AgentResponse] = None

    def add_task(self, description: str, assigned_agent: AgentRole) -> CrewTask:
        task = CrewTask(description=description, assigned_agent=assigned_agent)
        self.tasks.append(task)
        return task

    def complete(self, response: AgentResponse) -> None:
        self.status = ExecutionStatus.COMPLETED
        self.final_response = response
        self.end_time = datetime.utcnow()

    def fail(self) -> None:
        self.status = ExecutionStatus.FAILED
        self.end_time = datetime.utcnow()

    @property
    def duration_ms(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds() * 1000
