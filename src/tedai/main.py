import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from .agent import ChatAgentService, Orchestrator, build_tool_registry, make_chat_model
from .errors import AttemptsExhaustedError, ChatError, InvalidRequestError
from .schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
)
from .services.redis import get_redis_service
from .services.session_store import InMemorySessionStore, RedisSessionStore, SessionStore
from .settings import Settings, get_settings


def setup_server_logging(settings: Settings) -> logging.Logger:
    """Configure and return the server logger."""
    logger = logging.getLogger("tedai")
    if logger.handlers:
        return logger.getChild("server")

    logger.setLevel(settings.log_level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    logs_dir = Path(settings.log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    fh = RotatingFileHandler(logs_dir / "server.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    return logger.getChild("server")


settings = get_settings()
LOGGER = setup_server_logging(settings)


async def build_session_store(settings: Settings) -> SessionStore:
    """Use Redis when configured and reachable, otherwise keep sessions in process."""
    redis = get_redis_service()
    if redis is not None:
        try:
            await redis.connect()
            LOGGER.info("Using Redis session store")
            return RedisSessionStore(redis, ttl_seconds=settings.session_ttl_seconds)
        except (RedisConnectionError, RedisTimeoutError, OSError) as e:
            LOGGER.warning("Redis unavailable, falling back to in-memory sessions: %s", e)
    return InMemorySessionStore(
        ttl_seconds=settings.session_ttl_seconds,
        max_sessions=settings.max_sessions,
    )


async def build_chat_service(settings: Settings) -> ChatAgentService:
    orchestrator = Orchestrator(
        model=make_chat_model(),
        tools=build_tool_registry(),
        system_prompt=settings.system_prompt,
        max_attempts=settings.max_attempts,
    )
    return ChatAgentService(
        store=await build_session_store(settings),
        orchestrator=orchestrator,
        history_limit=settings.history_limit,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the chat service at startup; release the session store on shutdown."""
    LOGGER.info("Starting chat service (model=%s)", settings.model)
    try:
        app.state.chat_service = await build_chat_service(settings)
    except (ValueError, ChatError) as e:
        LOGGER.exception("Failed to start chat service: %s", e)
        raise

    yield

    LOGGER.info("Shutting down...")
    await app.state.chat_service.close()


app = FastAPI(
    title="TedAI Chat API",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    LOGGER.info("Rejected request to %s: %s", request.url.path, exc.errors())
    if request.url.path == "/api/chat":
        err = InvalidRequestError("Query is required and must be a string")
    else:
        err = InvalidRequestError("Invalid request body", str(exc.errors()))
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def get_chat_service(request: Request) -> ChatAgentService:
    return request.app.state.chat_service


@app.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat(
    req: ChatRequest,
    service: ChatAgentService = Depends(get_chat_service),
):
    """Answer a user query, using web search when the model asks for it.

    Request body:
        {"query": str, "sessionId": str (optional, defaults to "default")}

    Response:
        {"response": str, "sessionId": str} on success, otherwise
        {"error": str, "details": str (optional)} with a 4xx/5xx status.
    """
    if not isinstance(req.query, str) or not req.query:
        raise InvalidRequestError("Query is required and must be a string")
    session_id = settings.default_session_id if req.session_id is None else req.session_id

    try:
        result = await service.chat(session_id, req.query)
    except AttemptsExhaustedError as e:
        LOGGER.error("Chat failed session_id=%s: %s", session_id, e)
        return JSONResponse(status_code=500, content=e.to_dict())
    except Exception as e:
        LOGGER.exception("Error processing chat request: %s", e)
        return JSONResponse(
            status_code=500,
            content={
                "error": "An error occurred while processing your request",
                "details": str(e),
            },
        )

    return ChatResponse(response=result.answer, session_id=session_id)


@app.post("/api/chat/clear", response_model=MessageResponse)
async def clear_chat(
    request: Request,
    service: ChatAgentService = Depends(get_chat_service),
) -> MessageResponse:
    """Forget a session's history. Idempotent, and lenient about the body.

    A missing, malformed or non-object body clears the default session.
    A non-string ``sessionId`` is used in its string form.
    """
    session_id = settings.default_session_id
    try:
        body = await request.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("sessionId") is not None:
        session_id = str(body["sessionId"])
    await service.clear(session_id)
    return MessageResponse(message="Session cleared successfully")


@app.get("/api/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check for load balancers and monitoring."""
    return HealthResponse(status="ok", message="Server is running")


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    LOGGER.info("Server is running on http://localhost:%s", settings.port)
    LOGGER.info("Chat endpoint: http://localhost:%s/api/chat", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
