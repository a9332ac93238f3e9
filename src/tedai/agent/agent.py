import logging

from ..models import ChatTurn
from ..services.session_store import SessionStore, truncate_history
from .orchestrator import OrchestrationResult, Orchestrator

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 10


class ChatAgentService:
    """Runs one chat request against a session: store, truncate, orchestrate."""

    def __init__(
        self,
        store: SessionStore,
        orchestrator: Orchestrator,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator
        self.history_limit = history_limit

    async def chat(self, session_id: str, query: str) -> OrchestrationResult:
        """Answer ``query`` in the context of ``session_id``.

        The user turn is appended and the history trimmed before the model is
        called. Whatever the loop appended is kept, trimmed again, even when
        the request fails.
        """
        logger.info("Chat start session_id=%s", session_id)
        logger.debug("User message: %s", query[:200])
        async with self.store.session(session_id) as history:
            history.append(ChatTurn.user(query))
            history[:] = truncate_history(history, self.history_limit)
            try:
                result = await self.orchestrator.run(history)
            finally:
                history[:] = truncate_history(history, self.history_limit)
        logger.info(
            "Chat done session_id=%s attempts=%d tool_calls=%d",
            session_id,
            result.attempts,
            result.tool_calls,
        )
        return result

    async def clear(self, session_id: str) -> None:
        await self.store.clear(session_id)
        logger.info("Session cleared session_id=%s", session_id)

    async def close(self) -> None:
        await self.store.close()
