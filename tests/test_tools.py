from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tedai.agent.tools import (
    SEARCH_WEB_PARAMETERS,
    ToolRegistry,
    ToolSpec,
    WebSearchClient,
    build_search_web_tool,
    build_tool_registry,
    format_search_results,
    make_web_search_client,
)
from tedai.errors import ToolArgumentsError, ToolNotFoundError, ToolRegistryError
from tedai.models import SearchResult, ToolCall


async def _echo(query: str) -> str:
    return f"echo:{query}"


def _spec(name: str = "echo", handler=_echo, parameters=None) -> ToolSpec:
    return ToolSpec(
        name=name,
        description="Echo the query",
        parameters=parameters if parameters is not None else SEARCH_WEB_PARAMETERS,
        handler=handler,
    )


@pytest.fixture
def mock_tavily() -> MagicMock:
    """Mock AsyncTavilyClient with an async search()."""
    m = MagicMock()
    m.search = AsyncMock(
        return_value={
            "query": "ai news",
            "results": [
                {"title": "First", "content": "one", "url": "https://a.example", "score": 0.4},
                {"title": "Second", "content": "two", "url": "https://b.example", "score": 0.9},
            ],
        }
    )
    return m


def test_registry_rejects_duplicate_names() -> None:
    with pytest.raises(ToolRegistryError, match="Duplicate"):
        ToolRegistry([_spec(), _spec()])


def test_registry_rejects_sync_handler() -> None:
    def sync_handler(query: str) -> str:
        return query

    with pytest.raises(ToolRegistryError, match="async"):
        ToolRegistry([_spec(handler=sync_handler)])


def test_registry_rejects_empty_name_and_bad_schema() -> None:
    with pytest.raises(ToolRegistryError):
        ToolRegistry([_spec(name="")])
    with pytest.raises(ToolRegistryError, match="JSON object"):
        ToolRegistry([_spec(parameters={"type": "string"})])


def test_registry_schemas_are_openai_functions() -> None:
    registry = ToolRegistry([_spec()])
    assert registry.names == ["echo"]
    assert "echo" in registry
    assert registry.schemas() == [
        {
            "type": "function",
            "function": {
                "name": "echo",
                "description": "Echo the query",
                "parameters": SEARCH_WEB_PARAMETERS,
            },
        }
    ]


def test_registry_get_unknown_tool() -> None:
    registry = ToolRegistry([_spec()])
    with pytest.raises(ToolNotFoundError) as excinfo:
        registry.get("missing")
    assert excinfo.value.name == "missing"


@pytest.mark.asyncio
async def test_registry_invoke_parses_arguments() -> None:
    registry = ToolRegistry([_spec()])
    result = await registry.invoke(ToolCall(id="1", name="echo", arguments='{"query": "hi"}'))
    assert result == "echo:hi"


@pytest.mark.asyncio
async def test_registry_invoke_rejects_bad_json() -> None:
    registry = ToolRegistry([_spec()])
    with pytest.raises(ToolArgumentsError):
        await registry.invoke(ToolCall(id="1", name="echo", arguments="{oops"))
    with pytest.raises(ToolArgumentsError, match="echo"):
        await registry.invoke(ToolCall(id="1", name="echo", arguments='["hi"]'))


@pytest.mark.asyncio
async def test_web_search_passes_provider_order_through(mock_tavily: MagicMock) -> None:
    client = WebSearchClient(mock_tavily, max_results=3, search_depth="advanced")

    results = await client.search("ai news")

    mock_tavily.search.assert_awaited_once_with(
        query="ai news", max_results=3, search_depth="advanced"
    )
    assert results == [
        SearchResult(title="First", content="one", url="https://a.example"),
        SearchResult(title="Second", content="two", url="https://b.example"),
    ]


@pytest.mark.asyncio
async def test_web_search_handles_missing_results(mock_tavily: MagicMock) -> None:
    mock_tavily.search.return_value = {"query": "nothing"}
    assert await WebSearchClient(mock_tavily).search("nothing") == []


@pytest.mark.asyncio
async def test_web_search_errors_propagate(mock_tavily: MagicMock) -> None:
    mock_tavily.search.side_effect = ConnectionError("tavily unreachable")
    with pytest.raises(ConnectionError):
        await WebSearchClient(mock_tavily).search("q")


def test_format_search_results() -> None:
    text = format_search_results(
        [
            SearchResult(title="T1", content="C1", url="https://one"),
            SearchResult(title="T2", content="C2", url="https://two"),
        ]
    )
    assert text == "T1\nC1\nURL: https://one\n\nT2\nC2\nURL: https://two"
    assert format_search_results([]) == ""


@pytest.mark.asyncio
async def test_search_web_tool_formats_results(mock_tavily: MagicMock) -> None:
    registry = ToolRegistry([build_search_web_tool(WebSearchClient(mock_tavily))])

    text = await registry.invoke(
        ToolCall(id="c", name="search_web", arguments='{"query": "ai news"}')
    )

    assert text == "First\none\nURL: https://a.example\n\nSecond\ntwo\nURL: https://b.example"


def test_build_tool_registry_with_client(mock_tavily: MagicMock) -> None:
    registry = build_tool_registry(WebSearchClient(mock_tavily))
    assert registry.names == ["search_web"]


def test_make_web_search_client_requires_key() -> None:
    with patch("tedai.agent.tools.get_settings") as get_settings:
        get_settings.return_value = MagicMock(tavily_api_key=None)
        with pytest.raises(ToolRegistryError, match="TAVILY_API_KEY"):
            make_web_search_client()


def test_make_web_search_client_uses_settings() -> None:
    with patch("tedai.agent.tools.get_settings") as get_settings, patch(
        "tedai.agent.tools.AsyncTavilyClient"
    ) as tavily_cls:
        get_settings.return_value = MagicMock(
            tavily_api_key="tvly-test", search_max_results=7, search_depth="basic"
        )
        client = make_web_search_client()

    tavily_cls.assert_called_once_with(api_key="tvly-test")
    assert isinstance(client, WebSearchClient)
