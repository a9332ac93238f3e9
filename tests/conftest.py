import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest


_root = Path(__file__).resolve().parents[1]
_src = _root / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from tedai.agent.llm import ChatModel  # noqa: E402
from tedai.agent.orchestrator import Orchestrator  # noqa: E402
from tedai.agent.tools import ToolRegistry, ToolSpec, SEARCH_WEB_PARAMETERS  # noqa: E402
from tedai.models import AssistantReply, ToolCall  # noqa: E402

SYSTEM_PROMPT = "You are a helpful AI assistant."


def text_reply(content: str) -> AssistantReply:
    return AssistantReply(content=content)


def tool_reply(*calls: ToolCall, content: str = "") -> AssistantReply:
    return AssistantReply(content=content, tool_calls=list(calls))


def search_call(call_id: str = "call_1", query: str = "latest AI news") -> ToolCall:
    return ToolCall(id=call_id, name="search_web", arguments=f'{{"query": "{query}"}}')


@pytest.fixture
def search_handler() -> AsyncMock:
    """Async stand-in for the web search tool; records the queries it gets."""
    return AsyncMock(return_value="AI headline\nSomething happened\nURL: https://news.example/ai")


@pytest.fixture
def registry(search_handler: AsyncMock) -> ToolRegistry:
    async def search_web(query: str) -> str:
        return await search_handler(query=query)

    return ToolRegistry(
        [
            ToolSpec(
                name="search_web",
                description="Search the web",
                parameters=SEARCH_WEB_PARAMETERS,
                handler=search_web,
            )
        ]
    )


@pytest.fixture
def fake_model() -> MagicMock:
    """ChatModel whose ``complete`` replies are set per test via side_effect."""
    m = MagicMock(spec=ChatModel)
    m.complete = AsyncMock(return_value=text_reply("Hello!"))
    return m


@pytest.fixture
def orchestrator(fake_model: MagicMock, registry: ToolRegistry) -> Orchestrator:
    return Orchestrator(
        model=fake_model,
        tools=registry,
        system_prompt=SYSTEM_PROMPT,
        max_attempts=5,
    )
