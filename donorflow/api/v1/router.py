"""API v1 router aggregation."""

from fastapi import APIRouter

from donorflow.api.v1.endpoints import completions, docusign, health, tasks, workflows

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(workflows.router, prefix="/workflows", tags=["workflows"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(completions.router, prefix="/completions", tags=["completions"])
api_router.include_router(docusign.router, prefix="/docusign", tags=["docusign"])
