import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Sequence

from tavily import AsyncTavilyClient

from ..errors import ToolArgumentsError, ToolNotFoundError, ToolRegistryError
from ..models import SearchResult, ToolCall
from ..settings import get_settings

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Awaitable[str]]


@dataclass(frozen=True)
class ToolSpec:
    """A tool the model may call: its schema plus the coroutine that runs it."""

    name: str
    description: str
    parameters: Dict[str, Any]
    handler: ToolHandler

    def schema(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    """Closed set of tools, validated once when built."""

    def __init__(self, specs: Iterable[ToolSpec]) -> None:
        self._specs: Dict[str, ToolSpec] = {}
        for spec in specs:
            self._validate(spec)
            self._specs[spec.name] = spec
        logger.info("Tool registry ready: %s", ", ".join(self._specs) or "(empty)")

    def _validate(self, spec: ToolSpec) -> None:
        if not spec.name:
            raise ToolRegistryError("Tool name must not be empty")
        if spec.name in self._specs:
            raise ToolRegistryError(f"Duplicate tool name '{spec.name}'")
        if not inspect.iscoroutinefunction(spec.handler):
            raise ToolRegistryError(f"Tool '{spec.name}' handler must be an async function")
        if spec.parameters.get("type") != "object":
            raise ToolRegistryError(f"Tool '{spec.name}' parameters must be a JSON object schema")

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    @property
    def names(self) -> List[str]:
        return list(self._specs)

    def schemas(self) -> List[Dict[str, Any]]:
        """Tool schemas in OpenAI function format."""
        return [spec.schema() for spec in self._specs.values()]

    def get(self, name: str) -> ToolSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    async def invoke(self, call: ToolCall) -> str:
        """Run one tool call and return its text result."""
        spec = self.get(call.name)
        try:
            args = json.loads(call.arguments or "{}")
        except json.JSONDecodeError as e:
            raise ToolArgumentsError(call.name, str(e)) from e
        if not isinstance(args, dict):
            raise ToolArgumentsError(call.name, "arguments must be a JSON object")
        logger.info("Executing tool: %s", call.name)
        logger.debug("Tool %s args: %s", call.name, args)
        return await spec.handler(**args)


class WebSearchClient:
    """Tavily web search. Provider ordering is passed through unchanged."""

    def __init__(
        self,
        client: AsyncTavilyClient,
        max_results: int = 5,
        search_depth: str = "basic",
    ) -> None:
        self._client = client
        self._max_results = max_results
        self._search_depth = search_depth

    async def search(self, query: str) -> List[SearchResult]:
        logger.info("Web search query=%r", query[:200])
        response = await self._client.search(
            query=query,
            max_results=self._max_results,
            search_depth=self._search_depth,
        )
        results = [
            SearchResult(
                title=item.get("title") or "",
                content=item.get("content") or "",
                url=item.get("url") or "",
            )
            for item in response.get("results") or []
        ]
        logger.info("Web search returned %d results", len(results))
        return results


def format_search_results(results: Sequence[SearchResult]) -> str:
    """Render search hits as model context: title, snippet and URL per hit."""
    return "\n\n".join(f"{r.title}\n{r.content}\nURL: {r.url}" for r in results)


SEARCH_WEB_PARAMETERS: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "query": {
            "type": "string",
            "description": "The search query to find relevant information.",
        }
    },
    "required": ["query"],
}


def build_search_web_tool(search: WebSearchClient) -> ToolSpec:
    async def search_web(query: str) -> str:
        return format_search_results(await search.search(query))

    return ToolSpec(
        name="search_web",
        description=(
            "Useful for when you need to answer questions about current events "
            "or the world. Use this to get real-time information from the web."
        ),
        parameters=SEARCH_WEB_PARAMETERS,
        handler=search_web,
    )


def make_web_search_client() -> WebSearchClient:
    """Construct the Tavily-backed search client from settings."""
    settings = get_settings()
    if not settings.tavily_api_key:
        raise ToolRegistryError("TAVILY_API_KEY is not set")
    return WebSearchClient(
        AsyncTavilyClient(api_key=settings.tavily_api_key),
        max_results=settings.search_max_results,
        search_depth=settings.search_depth,
    )


def build_tool_registry(search: WebSearchClient | None = None) -> ToolRegistry:
    """Build the application's tool registry."""
    return ToolRegistry([build_search_web_tool(search or make_web_search_client())])
