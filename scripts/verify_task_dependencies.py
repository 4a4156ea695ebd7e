"""Check workflows for tasks that are open for work while a dependency is not completed.

Usage:
    python -m scripts.verify_task_dependencies WORKFLOW_ID [WORKFLOW_ID ...] [--repair]

Prints each violation and each blocked task whose dependencies are all
completed. With --repair, those blocked tasks are released (blocked -> pending).
Exits 1 when any violation was found.
"""

import asyncio
import sys

from donorflow.application.services.dependency_resolver import (
    find_violations,
    is_satisfied,
    unsatisfied_dependencies,
)
from donorflow.application.use_cases.tasks import CompletionCascadeService
from donorflow.domain.exceptions import DonorflowException
from scripts._bootstrap import load_env, open_task_store


async def verify(workflow_ids: list[str], repair: bool) -> int:
    """Return the number of violations across all workflows."""
    client, task_repo = open_task_store()
    cascade = CompletionCascadeService(task_repo)
    total_violations = 0
    try:
        for workflow_id in workflow_ids:
            tasks = await task_repo.list_by_workflow(workflow_id)
            if not tasks:
                print(f"{workflow_id}: no tasks")
                continue
            snapshot = {t.id: t.status for t in tasks}
            by_id = {t.id: t for t in tasks}
            violations = find_violations(tasks)
            total_violations += len(violations)
            for task_id in violations:
                task = by_id[task_id]
                missing = unsatisfied_dependencies(task, snapshot)
                print(f"{workflow_id}: {task.key} ({task.status.value}) waits on {missing}")
            releasable = [t for t in tasks if t.is_blocked and is_satisfied(t, snapshot)]
            for task in releasable:
                print(f"{workflow_id}: {task.key} is blocked but all dependencies are completed")
            if repair and releasable:
                released = await cascade.reevaluate_workflow(workflow_id)
                print(f"{workflow_id}: released {len(released)} task(s)")
            done = sum(1 for t in tasks if t.is_completed)
            print(f"{workflow_id}: {done}/{len(tasks)} completed, {len(violations)} violation(s)")
    finally:
        await client.aclose()
    return total_violations


def main() -> None:
    load_env()
    args = [a for a in sys.argv[1:] if a != "--repair"]
    if not args:
        print(__doc__, file=sys.stderr)
        sys.exit(2)
    try:
        violations = asyncio.run(verify(args, repair="--repair" in sys.argv[1:]))
    except DonorflowException as e:
        print(f"Failed: {e.message}", file=sys.stderr)
        sys.exit(1)
    sys.exit(1 if violations else 0)


if __name__ == "__main__":
    main()
