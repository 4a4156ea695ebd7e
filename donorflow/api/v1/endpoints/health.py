"""Health endpoints for liveness and readiness checks."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from donorflow.schemas.health import HealthResponse, ReadinessResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Return simple ok status for liveness."""
    return HealthResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"description": "Task store not configured", "model": ReadinessResponse}},
)
def readiness_check(request: Request) -> ReadinessResponse | JSONResponse:
    """200 when the task store is wired; signing and storage are reported but optional."""
    state = request.app.state
    body = ReadinessResponse(
        task_store=getattr(state, "task_repo", None) is not None,
        signing_provider=getattr(state, "signing_provider", None) is not None,
        artifact_storage=getattr(state, "artifact_storage", None) is not None,
    )
    if not body.task_store:
        body.status = "degraded"
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
