from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

Role = Literal["user", "assistant", "tool"]


@dataclass(frozen=True)
class ToolCall:
    """A model-issued request to run a named tool with JSON-encoded arguments."""

    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        function = data.get("function") or {}
        return cls(
            id=data.get("id", ""),
            name=function.get("name", ""),
            arguments=function.get("arguments") or "{}",
        )


@dataclass(frozen=True)
class ChatTurn:
    """One message in a conversation. Immutable once appended to a session."""

    role: Role
    content: str
    tool_call_id: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()

    @classmethod
    def user(cls, content: str) -> "ChatTurn":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Tuple[ToolCall, ...] = ()) -> "ChatTurn":
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "ChatTurn":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)

    def to_message(self) -> Dict[str, Any]:
        """Serialize to the chat-completions message shape (also used for storage)."""
        message: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_call_id is not None:
            message["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            message["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        return message

    @classmethod
    def from_message(cls, data: Dict[str, Any]) -> "ChatTurn":
        return cls(
            role=data["role"],
            content=data.get("content") or "",
            tool_call_id=data.get("tool_call_id"),
            tool_calls=tuple(ToolCall.from_dict(tc) for tc in data.get("tool_calls") or []),
        )


@dataclass(frozen=True)
class SearchResult:
    """One web search hit, in provider order."""

    title: str
    content: str
    url: str


@dataclass
class AssistantReply:
    """The model's reply for a single attempt."""

    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
