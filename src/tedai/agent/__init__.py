"""Agent package for the TedAI chat assistant.

Exposes the chat service together with the pieces it is built from: the
LLM adapter, the tool registry and the orchestration loop.
"""

from .agent import ChatAgentService
from .llm import ChatModel, make_chat_model
from .orchestrator import LoopState, OrchestrationResult, Orchestrator, transition
from .tools import (
    ToolRegistry,
    ToolSpec,
    WebSearchClient,
    build_tool_registry,
    format_search_results,
)

__all__ = [
    "ChatAgentService",
    "ChatModel",
    "LoopState",
    "OrchestrationResult",
    "Orchestrator",
    "ToolRegistry",
    "ToolSpec",
    "WebSearchClient",
    "build_tool_registry",
    "format_search_results",
    "make_chat_model",
    "transition",
]
