import logging
from typing import Any, Dict, List, Sequence

from openai import AsyncOpenAI

from ..models import AssistantReply, ChatTurn, ToolCall
from ..settings import get_settings

logger = logging.getLogger(__name__)


class ChatModel:
    """Chat-completions adapter over an OpenAI-compatible provider (Groq by default)."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 512,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(
        self,
        system_prompt: str,
        history: Sequence[ChatTurn],
        tools: List[Dict[str, Any]],
    ) -> AssistantReply:
        """Send ``[system] + history`` with the tool schemas; return the first choice."""
        messages: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        messages.extend(turn.to_message() for turn in history)

        kwargs: Dict[str, Any] = {}
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            **kwargs,
        )
        message = response.choices[0].message
        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=tc.function.arguments or "{}",
            )
            for tc in message.tool_calls or []
        ]
        return AssistantReply(content=message.content or "", tool_calls=tool_calls)


def make_chat_model() -> ChatModel:
    """Construct the chat model from settings."""
    settings = get_settings()
    if not settings.groq_api_key:
        raise ValueError("GROQ_API_KEY environment variable must be set")
    client = AsyncOpenAI(api_key=settings.groq_api_key, base_url=settings.groq_base_url)
    return ChatModel(
        client,
        model=settings.model,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )
