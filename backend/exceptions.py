"""
Service exception hierarchy.

Routing, tool, memory and embedding failures are recovered where they happen and
never reach this module's handlers. Everything here is either orchestration-fatal
or a request error that the HTTP layer maps to a status code.
"""

from typing import Optional


class AgentCrewError(Exception):
    """Base class for errors surfaced to callers of the crew."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoAgentsAvailableError(AgentCrewError):
    """Neither the requested agent nor the general fallback exists in the crew."""

    status_code = 503

    def __init__(self, message: str = "No agents available"):
        super().__init__(message)


class AgentNotRegisteredError(AgentCrewError):
    """No constructor is registered for the requested role."""

    status_code = 500

    def __init__(self, role: str):
        super().__init__(f"No agent registered for role: {role}")
        self.role = role


class AllAgentsFailedError(AgentCrewError):
    """Every agent of a parallel set raised."""

    status_code = 502

    def __init__(self, roles: list, errors: Optional[list] = None):
        super().__init__(f"All agents failed: {', '.join(str(r) for r in roles)}")
        self.roles = roles
        self.errors = errors or []


class CompletionError(AgentCrewError):
    """The chat completion service failed or timed out."""

    status_code = 502


class MemoryNotFoundError(AgentCrewError):
    """Memory item does not exist for this user."""

    status_code = 404

    def __init__(self, memory_id: str):
        super().__init__(f"Memory {memory_id} not found")
        self.memory_id = memory_id


class ExecutionNotFoundError(AgentCrewError):
    """Crew execution record does not exist for this user."""

    status_code = 404

    def __init__(self, execution_id: str):
        super().__init__(f"Execution {execution_id} not found")
        self.execution_id = execution_id


class InvalidTaskTransitionError(AgentCrewError):
    """A crew task was moved backwards or out of a terminal state."""

    def __init__(self, task_id: str, current: str, target: str):
        super().__init__(f"Task {task_id} cannot move from {current} to {target}")
        self.task_id = task_id
