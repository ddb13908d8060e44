"""FastAPI application entry point."""

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from insight_assistant.api import router as api_router
from insight_assistant.core.config import get_settings
from insight_assistant.core.exceptions import RetrievalUnavailable
from insight_assistant.core.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Insight Assistant",
    description="Retrieval-grounded competitor intelligence chat with streamed answers and UI cards",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Conversation-Id"],
)


@app.exception_handler(RetrievalUnavailable)
async def retrieval_unavailable_handler(request: Request, exc: RetrievalUnavailable) -> JSONResponse:
    """Index build failures raised while resolving dependencies."""
    logger.error(f"Search backend unavailable on {request.url.path}: {exc}")
    return JSONResponse(content={"detail": "Search backend unavailable"}, status_code=503)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(
        content={"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()},
        status_code=200,
    )


app.include_router(api_router, prefix="/api")
