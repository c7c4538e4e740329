"""
Merging several agent responses into one crew response.
"""

from typing import List, Sequence

from config.agents import get_all_agent_configs
from config.crews import get_crew_template
from domain.enums import AgentRole, CrewWorkflow
from domain.responses import AgentResponse, ResponseMetadata, TokenUsage

CREW_AGENT_ID = "crew"


def _label(role: AgentRole) -> str:
    config = get_all_agent_configs().get(role)
    return config.display_label if config else f"🤖 {role}"


def _name(role: AgentRole) -> str:
    config = get_all_agent_configs().get(role)
    return config.name if config else str(role)


def merge_labeled(responses: Sequence[AgentResponse]) -> str:
    """Each response under its agent's emoji and name, separated by horizontal rules."""
    return "\n\n---\n\n".join(f"**{_label(r.agent_role)}:**\n{r.content}" for r in responses)


def merge_hierarchical(responses: Sequence[AgentResponse]) -> str:
    """Primary answer followed by attributed enhancements."""
    merged = responses[0].content
    if len(responses) > 1:
        merged += "\n\n**Additional Insights:**\n"
        for response in responses[1:]:
            merged += f"\n*From {_name(response.agent_role)}:* {response.content}"
    return merged


def no_responses() -> AgentResponse:
    return AgentResponse(
        content=get_crew_template("no_responses"),
        agent_id=CREW_AGENT_ID,
        agent_role=AgentRole.GENERAL,
    )


def combine_responses(responses: Sequence[AgentResponse], workflow: CrewWorkflow) -> AgentResponse:
    """
    Combine responses produced under a workflow.

    Zero responses yield the neutral "no responses" answer. A single response
    is returned unchanged whatever the workflow.
    """
    if not responses:
        return no_responses()
    if len(responses) == 1:
        return responses[0]

    if workflow == CrewWorkflow.SEQUENTIAL:
        content = responses[-1].content
    elif workflow == CrewWorkflow.HIERARCHICAL:
        content = merge_hierarchical(responses)
    else:
        # Parallel and consensus both surface every viewpoint
        content = merge_labeled(responses)

    tools_used: List[str] = []
    for response in responses:
        for tool in response.tools_used:
            if tool not in tools_used:
                tools_used.append(tool)

    sources: List[str] = []
    for response in responses:
        for source in response.metadata.sources:
            if source not in sources:
                sources.append(source)

    usages = [r.metadata.tokens for r in responses if r.metadata.tokens is not None]
    tokens = None
    if usages:
        tokens = TokenUsage()
        for usage in usages:
            tokens = tokens + usage

    return AgentResponse(
        content=content,
        agent_id=CREW_AGENT_ID,
        agent_role=AgentRole.GENERAL,
        tools_used=tools_used,
        delegated_to=[r.agent_role for r in responses],
        metadata=ResponseMetadata(
            tokens=tokens,
            reasoning=f"Combined {len(responses)} agent responses using {workflow} workflow",
            sources=sources,
        ),
    )
