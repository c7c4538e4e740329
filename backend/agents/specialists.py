"""
Specialist agents.

Identity, prompts, eligibility patterns and tool categories come from
agents.yaml; the classes here only override what differs in behavior.
"""

import json
from typing import Any, List

from domain.contexts import AgentContext

from .base import BaseAgent, ToolResult

TABLE_PREVIEW_ROWS = 10


class SalesAgent(BaseAgent):
    """CRM, deals, pipelines and customer relationships."""


class MarketingAgent(BaseAgent):
    """Campaigns, content, social media and email."""


class GeneralAgent(BaseAgent):
    """Fallback for anything no specialist claims."""


class CodeAgent(BaseAgent):
    """Development, debugging and technical tasks. Code-shaped text counts as a match."""


class ResearchAgent(BaseAgent):
    """Web research and analysis. Cites the URLs and searches its tools used."""

    follow_up_instruction = (
        "Please synthesize these findings into a clear, well-organized response. Cite sources where relevant."
    )

    def can_handle(self, query: str, context: AgentContext) -> bool:
        # Research help does not depend on connected tools
        return self.matches_query(query)

    def collect_sources(self, result: ToolResult) -> List[str]:
        sources = []
        arguments = result.call.arguments
        if arguments.get("url"):
            sources.append(str(arguments["url"]))
        if arguments.get("query"):
            sources.append(f"Search: {arguments['query']}")
        return sources


def format_rows(result: Any) -> str:
    """
    Render a tool result for the model.

    Lists of objects become a markdown table of the first rows; other lists are
    joined; anything else is pretty-printed JSON.
    """
    if isinstance(result, list):
        if result and isinstance(result[0], dict):
            headers = list(result[0].keys())
            lines = [
                "| " + " | ".join(str(h) for h in headers) + " |",
                "| " + " | ".join("---" for _ in headers) + " |",
            ]
            for row in result[:TABLE_PREVIEW_ROWS]:
                cells = [str(row.get(h, "")) if row.get(h) is not None else "" for h in headers]
                lines.append("| " + " | ".join(cells) + " |")
            table = "\n".join(lines)
            if len(result) > TABLE_PREVIEW_ROWS:
                table += f"\n... and {len(result) - TABLE_PREVIEW_ROWS} more rows"
            return table
        joined = ", ".join(str(v) for v in result[:TABLE_PREVIEW_ROWS])
        if len(result) > TABLE_PREVIEW_ROWS:
            joined += f" ... ({len(result)} total)"
        return joined
    return json.dumps(result, indent=2, default=str)


class DataAgent(BaseAgent):
    """Analytics, spreadsheets and reporting. Tabular tool results are shown as tables."""

    def format_tool_result(self, result: ToolResult) -> str:
        if not result.ok:
            return super().format_tool_result(result)
        return f"{result.name}:\n{format_rows(result.result)}"
