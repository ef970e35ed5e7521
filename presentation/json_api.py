"""
JSON API response types.

A run yields either a decision response or a typed failure response.
Can be used with FastAPI, Flask, or any web framework.
"""

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from domain import SynthesisError, SynthesizedDecision
from domain.errors import ErrorCode
from orchestration.pipeline import PipelineResult, PipelineStatus


# ============================================================================
# Response Models
# ============================================================================

class SourceStatusResponse(BaseModel):
    """API response for one collaborator's outcome."""
    source_id: str
    kind: str
    status: str
    elapsed_ms: int
    error: str | None = None
    error_code: str | None = None


class PipelineStatusResponse(BaseModel):
    """API response for run health."""
    subject: str
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: int | None = None
    healthy: bool
    sources: list[SourceStatusResponse]
    warnings: list[str]
    errors: list[str]


class DecisionResponse(BaseModel):
    """Successful run."""
    status: Literal["ok"] = "ok"
    decision: SynthesizedDecision
    pipeline: PipelineStatusResponse | None = None


class ErrorDetail(BaseModel):
    error: str
    code: str
    message: str
    subject: str | None = None
    fatal: bool
    context: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Failed run: no decision was produced."""
    status: Literal["error"] = "error"
    error: ErrorDetail


# ============================================================================
# Conversion Functions
# ============================================================================

def _status_to_response(status: PipelineStatus) -> PipelineStatusResponse:
    """Convert PipelineStatus to API response."""
    duration = status.duration
    return PipelineStatusResponse(
        subject=status.subject,
        started_at=status.started_at,
        completed_at=status.completed_at,
        duration_ms=int(duration.total_seconds() * 1000) if duration else None,
        healthy=status.is_healthy,
        sources=[
            SourceStatusResponse(
                source_id=r.source_id,
                kind=r.kind.value,
                status=r.status.value,
                elapsed_ms=r.elapsed_ms,
                error=r.error.message if r.error else None,
                error_code=r.error.code.value if r.error else None,
            )
            for r in status.sources.values()
        ],
        warnings=list(status.warnings),
        errors=list(status.errors),
    )


def to_api_response(result: PipelineResult) -> DecisionResponse:
    """
    Convert a pipeline result to an API response.

    Args:
        result: Decision and run status

    Returns:
        Structured API response
    """
    return DecisionResponse(
        decision=result.decision,
        pipeline=_status_to_response(result.status),
    )


def error_response(error: Exception) -> ErrorResponse:
    """
    Typed failure for an exception that aborted a run.

    SynthesisErrors keep their code and context; anything else is
    reported as an internal error.
    """
    if isinstance(error, SynthesisError):
        data = error.to_dict()
        return ErrorResponse(error=ErrorDetail(
            error=data["error"],
            code=data["code"],
            message=data["message"],
            subject=data["subject"],
            fatal=error.is_fatal,
            context=data["context"],
        ))

    return ErrorResponse(error=ErrorDetail(
        error=type(error).__name__,
        code=ErrorCode.INTERNAL.value,
        message=str(error),
        fatal=True,
    ))


def to_json(decision: SynthesizedDecision) -> dict[str, Any]:
    """
    Convert a decision to a JSON-serializable dict.

    Args:
        decision: Synthesized decision

    Returns:
        JSON-serializable dictionary
    """
    return decision.model_dump(mode="json")


def from_json(data: dict[str, Any] | str) -> SynthesizedDecision:
    """Rebuild a decision from to_json() output or its JSON text."""
    if isinstance(data, str):
        data = json.loads(data)
    return SynthesizedDecision.model_validate(data)


def dumps(response: BaseModel | SynthesizedDecision, indent: int | None = 2) -> str:
    """Serialize any response model to JSON text."""
    return response.model_dump_json(indent=indent)
