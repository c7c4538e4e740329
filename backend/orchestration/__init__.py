"""
Crew orchestration module.

Routes a query, runs one agent or a workflow over several agents, combines
their answers, and hands the exchange to the background learning queue.
"""

from .combiner import combine_responses
from .crew import DEFAULT_CREW, AgentCrew, create_crew
from .learning import LearningJob, LearningQueue

__all__ = [
    "AgentCrew",
    "DEFAULT_CREW",
    "LearningJob",
    "LearningQueue",
    "combine_responses",
    "create_crew",
]
