"""
Exception hierarchy for the chat backend.

Every error carries a human-readable ``message`` and optional ``details``.
``status_code`` is the HTTP status the API layer answers with.
"""

from typing import Any, Dict, Optional


class ChatError(Exception):
    """Base exception for all chat backend errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON error body returned by the API."""
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidRequestError(ChatError):
    """Malformed or missing client input."""

    status_code = 400


class ToolNotFoundError(ChatError):
    """The model asked for a tool that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool '{name}'")


class ToolArgumentsError(ChatError):
    """Tool call arguments are not a JSON object."""

    def __init__(self, name: str, details: str) -> None:
        self.name = name
        super().__init__(f"Invalid arguments for tool '{name}'", details)


class AttemptsExhaustedError(ChatError):
    """The orchestration loop ran out of attempts without a final answer."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__("Failed to get response from AI after multiple attempts")


class ToolRegistryError(ChatError):
    """The tool registry failed validation at startup."""
