"""Bounded tool-calling loop.

The loop alternates between asking the model for a reply and executing the
tools it requests, until the model answers in plain text or the attempt
budget runs out. Control flow is an explicit state machine so the
termination rules can be tested without a model.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..errors import AttemptsExhaustedError
from ..models import AssistantReply, ChatTurn
from .llm import ChatModel
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


class LoopState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    EXHAUSTED = "exhausted"


def transition(
    state: LoopState,
    attempts: int,
    max_attempts: int,
    reply: Optional[AssistantReply] = None,
) -> LoopState:
    """Return the state that follows ``state``.

    ``attempts`` is the number of model calls made so far. From
    AWAITING_MODEL the ``reply`` of the latest call decides the next state;
    from EXECUTING_TOOLS the tools have just run.
    """
    if state is LoopState.AWAITING_MODEL:
        if reply is None:
            raise ValueError("a model reply is required to leave AWAITING_MODEL")
        if reply.tool_calls:
            return LoopState.EXECUTING_TOOLS
        if reply.content:
            return LoopState.DONE
    elif state is not LoopState.EXECUTING_TOOLS:
        raise ValueError(f"{state.value} is terminal")
    return LoopState.AWAITING_MODEL if attempts < max_attempts else LoopState.EXHAUSTED


@dataclass
class OrchestrationResult:
    answer: str
    attempts: int
    tool_calls: int


class Orchestrator:
    """Runs the tool-calling loop over a session's history, appending to it in place."""

    def __init__(
        self,
        model: ChatModel,
        tools: ToolRegistry,
        system_prompt: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._model = model
        self._tools = tools
        self._system_prompt = system_prompt
        self.max_attempts = max_attempts

    async def run(self, history: List[ChatTurn]) -> OrchestrationResult:
        """Drive the loop until a final answer; raises AttemptsExhaustedError otherwise.

        Provider and tool errors propagate unchanged. Turns appended before a
        failure stay in ``history``.
        """
        state = LoopState.AWAITING_MODEL
        attempts = 0
        tool_calls = 0
        reply = AssistantReply()

        while True:
            if state is LoopState.AWAITING_MODEL:
                attempts += 1
                logger.info("Model attempt %d/%d", attempts, self.max_attempts)
                reply = await self._model.complete(
                    self._system_prompt, history, self._tools.schemas()
                )
                if not reply.tool_calls and not reply.content:
                    logger.warning("Model returned an empty reply on attempt %d", attempts)

            elif state is LoopState.EXECUTING_TOOLS:
                history.append(ChatTurn.assistant(reply.content, tuple(reply.tool_calls)))
                for call in reply.tool_calls:
                    tool_calls += 1
                    result = await self._tools.invoke(call)
                    history.append(ChatTurn.tool(call.id, result))

            elif state is LoopState.DONE:
                history.append(ChatTurn.assistant(reply.content))
                logger.info(
                    "Final answer after %d attempt(s), %d tool call(s)", attempts, tool_calls
                )
                return OrchestrationResult(
                    answer=reply.content, attempts=attempts, tool_calls=tool_calls
                )

            else:
                logger.error("No final answer after %d attempts", attempts)
                raise AttemptsExhaustedError(attempts)

            state = transition(state, attempts, self.max_attempts, reply)
