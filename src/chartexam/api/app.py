"""FastAPI application factory for the grading API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from chartexam.api import routes
from chartexam.api.collaborators import IdentityResolver, ResultSink
from chartexam.config import AppSettings
from chartexam.logging import get_logger

logger = get_logger(__name__)


async def _bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Map body validation failures to the 400 shape clients expect."""
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
    logger.info("request_rejected", path=request.url.path, fields=fields)
    return JSONResponse(
        status_code=400,
        content={"error": True, "message": "Missing required parameters", "fields": fields},
    )


def create_app(
    settings: AppSettings | None = None,
    identity_resolver: IdentityResolver | None = None,
    result_sink: ResultSink | None = None,
    lifespan: Any = None,
) -> FastAPI:
    """Create and configure the grading API.

    Args:
        settings: Application settings; loaded from the environment when omitted.
        identity_resolver: Auth collaborator. None grades every caller anonymously.
        result_sink: Persistence collaborator. None skips persistence.
        lifespan: Optional async context manager for startup/shutdown hooks.

    Returns:
        FastAPI app with the grading routes mounted under ``/api``.
    """
    app = FastAPI(title="Chart Exam Grader", lifespan=lifespan)

    app.state.settings = settings or AppSettings()
    app.state.identity_resolver = identity_resolver
    app.state.result_sink = result_sink

    app.add_exception_handler(RequestValidationError, _bad_request)
    app.include_router(routes.router, prefix="/api")

    return app
