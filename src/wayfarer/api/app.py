"""
HTTP front end for Wayfarer.

It exposes the following endpoints:
- **GET /health**     - liveness probe for health checks.
- **POST /agent**     - one user turn: {"message": "..."}
- **GET /history**    - the conversation history of the process-wide session.
- **DELETE /history** - forget the conversation.

The agent session is created once at startup and stored on ``app.state.session``.
"""

import logging

from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
    Request,
)
from fastapi.concurrency import run_in_threadpool

from wayfarer.agent.agent_loop import (
    AgentSession,
    FailureKind,
    TurnFailedError,
)
from wayfarer.api.models import (
    FailureDetail,
    HistoryResponse,
    MessageRequest,
    MessageResponse,
)
from wayfarer.common import (
    AnsiColors,
    colored_print,
)
from wayfarer.config import settings

logger = logging.getLogger(__name__)

_FAILURE_STATUS = {
    FailureKind.MALFORMED_RESPONSE: 422,
    FailureKind.EXHAUSTED_ITERATIONS: 504,
    FailureKind.TRANSPORT_FATAL: 503,
    FailureKind.INTERNAL_FATAL: 500,
}

app = FastAPI(title="Wayfarer API", version="0.1.0", description="Wayfarer travel agent API")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def get_session(request: Request) -> AgentSession:
    """Return the session attached to the running app."""
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Agent session is not initialised")
    return session


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.post("/agent", response_model=MessageResponse, summary="Process a message")
async def agent_endpoint(
    req: MessageRequest, session: AgentSession = Depends(get_session)
) -> MessageResponse:
    """Run one user turn through the agent loop."""
    logger.debug("Incoming message: %s", req.message)
    try:
        # The loop blocks on model and tool I/O
        reply, tools_used = await run_in_threadpool(session.handle_turn_with_tools, req.message)
    except TurnFailedError as exc:
        logger.warning("Turn failed (%s): %s", exc.kind.value, exc.message)
        detail = FailureDetail(kind=exc.kind.value, message=exc.message)
        raise HTTPException(
            status_code=_FAILURE_STATUS[exc.kind], detail=detail.model_dump()
        ) from exc

    return MessageResponse(reply=reply, tools_used=tools_used)


@app.get("/history", response_model=HistoryResponse, summary="Conversation history")
async def get_history(session: AgentSession = Depends(get_session)) -> HistoryResponse:
    """Return every turn recorded so far."""
    return HistoryResponse(turns=list(session.history))


@app.delete("/history", status_code=204, summary="Clear the conversation")
async def clear_history(session: AgentSession = Depends(get_session)) -> None:
    """Forget the conversation."""
    session.reset()


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    session: AgentSession,
    host: str = "0.0.0.0",
    port: int | None = None,
    log_level: str | None = None,
) -> None:
    """Start a uvicorn server hosting *app* with *session* attached.

    Parameters
    ----------
    session:
        The process-wide agent session.
    host, port:
        Bind address for the HTTP server.
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    port = port or settings.API_PORT
    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    app.state.session = session
    logger.info("Starting Wayfarer API at %s:%d (log_level=%s)", host, port, log_level)
    colored_print(f"✈️  Wayfarer API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(app, host=host, port=port, log_level=log_level)
