"""Health check API schemas."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response for GET /health (liveness)."""

    status: str = Field(default="ok", description="Service status")


class ReadinessResponse(BaseModel):
    """Response for GET /health/ready: which backing services are wired."""

    status: str = Field(default="ok", description="ok, or degraded when the task store is missing")
    task_store: bool
    signing_provider: bool
    artifact_storage: bool
