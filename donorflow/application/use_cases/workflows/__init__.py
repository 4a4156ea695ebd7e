"""Workflow use cases: instantiate and reset from templates."""

from donorflow.application.use_cases.workflows.instantiate_workflow import (
    WorkflowInstantiator,
    build_tasks,
)

__all__ = ["WorkflowInstantiator", "build_tasks"]
