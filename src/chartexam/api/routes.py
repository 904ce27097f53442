"""JSON endpoints for grading chart exam submissions."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Literal

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from chartexam.api.collaborators import identify, persist_result
from chartexam.candles import normalize_candles
from chartexam.exceptions import AuthenticationError, UnknownToolError
from chartexam.logging import bind_request_context, get_logger
from chartexam.models import ValidationResult
from chartexam.scoring.validator import resolve_tool, validate

log = get_logger(__name__)

router = APIRouter()


class ValidateRequest(BaseModel):
    """Body of ``POST /api/validate``. Field names follow the front-end's camelCase."""

    tool: str
    drawings: list[Any]
    chartData: list[Any]
    timeframe: str | None = None
    part: Literal[1, 2] | None = None


def _decimal_to_number(obj: Any) -> Any:
    """Recursively convert Decimal values to JSON numbers (int when integral)."""
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    if isinstance(obj, dict):
        return {k: _decimal_to_number(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_decimal_to_number(item) for item in obj]
    return obj


def result_to_response(result: ValidationResult) -> dict[str, Any]:
    body: dict[str, Any] = {
        "score": result.score,
        "totalExpectedPoints": result.total_expected_points,
        "percentage": result.percentage,
        "feedback": result.feedback,
        "message": result.message,
        "correctAnswers": result.correct_answers,
    }
    if result.expected is not None:
        body["expected"] = result.expected
    return _decimal_to_number(body)


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": True, "message": message, **extra})


@router.get("/health")
async def health() -> JSONResponse:
    return JSONResponse(content={"status": "ok"})


@router.post("/validate")
async def validate_submission(
    payload: ValidateRequest,
    request: Request,
    background_tasks: BackgroundTasks,
) -> JSONResponse:
    """Grade drawings for one tool against ground truth detected from chartData."""
    state = request.app.state
    bind_request_context(request_id=uuid.uuid4().hex[:12], tool=payload.tool)

    try:
        tool = resolve_tool(payload.tool)
    except UnknownToolError:
        return _error(400, "Invalid tool type")

    try:
        user_id = identify(request.headers.get("authorization"), state.identity_resolver)
    except AuthenticationError as e:
        log.warning("auth_rejected", reason=str(e))
        return _error(401, "Authorization token invalid")

    try:
        candles = normalize_candles(payload.chartData)
        result = validate(
            tool,
            payload.drawings,
            candles,
            timeframe=payload.timeframe,
            part=payload.part,
            settings=state.settings,
        )
    except Exception:
        log.exception("validation_failed", tool=tool.value)
        return _error(500, "Validation failed", tool=tool.value)

    body = result_to_response(result)

    if user_id is not None and state.result_sink is not None:
        background_tasks.add_task(
            persist_result,
            state.result_sink,
            {
                "userId": user_id,
                "testType": f"chart-exam:{tool.value}",
                "score": body["score"],
                "totalPoints": body["totalExpectedPoints"],
                "details": {
                    "feedback": body["feedback"],
                    "expected": body.get("expected") or body["correctAnswers"],
                    "timeframe": payload.timeframe,
                    "part": payload.part,
                },
            },
        )

    return JSONResponse(content=body)
