"""Firestore collection names (schema-in-code).

Firestore has no DDL or migrations. Collections are created automatically
on first write; these constants are the single source of truth.

Composite indexes required by the task store:
    tasks: workflow_id ASC, order ASC
    tasks: workflow_id ASC, dependencies ARRAY_CONTAINS
    tasks: assigned_to ASC, status ASC
    tasks: type ASC, status IN
"""

COLLECTION_TASKS = "tasks"
COLLECTION_WORKFLOW_GENERATIONS = "workflow_generations"
COLLECTION_PROCESSED_SIGNING_EVENTS = "processed_signing_events"
COLLECTION_TASK_COMPLETIONS = "task_completions"
