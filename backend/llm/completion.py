"""
Chat completion service.

Agents depend on the CompletionService protocol only. LiteLLMCompletionService is
the production implementation and works with any provider litellm supports.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

import litellm
from domain.contexts import AgentMessage, ToolCall
from domain.enums import MessageRole
from domain.responses import TokenUsage
from exceptions import CompletionError

logger = logging.getLogger("CompletionService")

TOOL_RESULTS_PREFIX = "Tool results:\n"


@dataclass
class CompletionOptions:
    model: str
    temperature: float = 0.7
    max_tokens: int = 2000


@dataclass
class CompletionResult:
    """
    Output of one completion call.

    Attributes:
        content: Text answer (may be empty when the model only requests tools)
        tool_calls: Tool invocations requested by the model
        usage: Token usage if the provider reported it
    """

    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    usage: Optional[TokenUsage] = None


class CompletionService(Protocol):
    async def complete(
        self,
        messages: Sequence[AgentMessage],
        options: CompletionOptions,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> CompletionResult: ...


def to_provider_messages(messages: Sequence[AgentMessage]) -> List[Dict[str, Any]]:
    """
    Convert agent messages to chat-completion message dicts.

    The synthetic tool-summary message becomes a user turn, and the assistant
    turn that requested the tools is sent as plain text, so no per-call ids
    are needed by the provider.
    """
    converted = []
    for message in messages:
        if message.role == MessageRole.TOOL:
            converted.append({"role": "user", "content": TOOL_RESULTS_PREFIX + message.content})
        else:
            converted.append({"role": message.role.value, "content": message.content})
    return converted


def _parse_arguments(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning(f"⚠️ Could not decode tool arguments: {str(raw)[:100]}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_completion_response(response: Any) -> CompletionResult:
    """Extract text, tool calls and usage from a litellm ModelResponse."""
    message = response.choices[0].message
    tool_calls = []
    for call in getattr(message, "tool_calls", None) or []:
        tool_calls.append(
            ToolCall(
                id=call.id,
                name=call.function.name,
                arguments=_parse_arguments(call.function.arguments),
            )
        )

    usage = None
    raw_usage = getattr(response, "usage", None)
    if raw_usage is not None:
        usage = TokenUsage(
            prompt_tokens=getattr(raw_usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(raw_usage, "completion_tokens", 0) or 0,
        )

    return CompletionResult(content=message.content or "", tool_calls=tool_calls, usage=usage)


class LiteLLMCompletionService:
    """CompletionService backed by litellm.acompletion."""

    def __init__(self, timeout: float = 60.0, **litellm_params):
        self.timeout = timeout
        self.litellm_params = litellm_params

    async def complete(
        self,
        messages: Sequence[AgentMessage],
        options: CompletionOptions,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> CompletionResult:
        params: Dict[str, Any] = {
            "model": options.model,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            **self.litellm_params,
        }
        if tools:
            params["tools"] = tools
            params["tool_choice"] = "auto"

        try:
            response = await asyncio.wait_for(
                litellm.acompletion(messages=to_provider_messages(messages), **params),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise CompletionError(f"Completion timed out after {self.timeout}s ({options.model})") from e
        except Exception as e:
            raise CompletionError(f"Completion failed ({options.model}): {e}") from e

        return parse_completion_response(response)
