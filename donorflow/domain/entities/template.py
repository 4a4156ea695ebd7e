"""Workflow template entities.

A template is a named, versioned DAG of task blueprints. Blueprints refer
to each other by key; ids only exist once a template is instantiated.
Templates validate themselves on construction, so an invalid DAG can never
reach the instantiator.
"""

import copy
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from donorflow.domain.enums import AssignedRole, TaskPriority, TaskType
from donorflow.domain.exceptions import TemplateDefinitionException, ValidationException


@dataclass(frozen=True)
class InstantiationContext:
    """Participants and campaign facts a template is instantiated with."""

    donor_id: str
    nonprofit_admin_id: str | None = None
    appraiser_id: str | None = None
    campaign_id: str | None = None
    campaign_title: str | None = None
    organization_name: str | None = None

    def __post_init__(self) -> None:
        if not self.donor_id:
            raise ValidationException("donor_id is required", field="donor_id")

    def assignee_for(self, role: AssignedRole) -> str | None:
        """User id that owns a role's lane; None while not yet known (e.g. appraiser)."""
        if role is AssignedRole.DONOR:
            return self.donor_id
        if role is AssignedRole.NONPROFIT_ADMIN:
            return self.nonprofit_admin_id
        return self.appraiser_id

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InstantiationContext":
        known = {k: data.get(k) for k in cls.__dataclass_fields__}
        return cls(**known)


MetadataFactory = Callable[[InstantiationContext], dict[str, Any]]


@dataclass(frozen=True)
class TaskBlueprint:
    """One task of a template, with its dependencies given as sibling keys."""

    key: str
    title: str
    description: str
    assigned_role: AssignedRole
    type: TaskType
    priority: TaskPriority = TaskPriority.HIGH
    depends_on: tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)
    metadata_factory: MetadataFactory | None = None

    def build_metadata(self, context: InstantiationContext) -> dict[str, Any]:
        """Fresh metadata map for one instantiated task (static entries + factory entries)."""
        built = copy.deepcopy(dict(self.metadata))
        if self.metadata_factory is not None:
            built.update(self.metadata_factory(context))
        return built


@dataclass(frozen=True)
class WorkflowTemplate:
    """Named, versioned DAG of blueprints.

    Raises:
        TemplateDefinitionException: on duplicate keys, unknown depends_on keys
            or a dependency cycle.
    """

    name: str
    version: int
    blueprints: tuple[TaskBlueprint, ...]
    description: str = ""

    def __post_init__(self) -> None:
        if not self.blueprints:
            raise TemplateDefinitionException(self.name, "template has no tasks")
        seen: set[str] = set()
        for bp in self.blueprints:
            if bp.key in seen:
                raise TemplateDefinitionException(self.name, f"duplicate task key '{bp.key}'")
            seen.add(bp.key)
        for bp in self.blueprints:
            unknown = [k for k in bp.depends_on if k not in seen]
            if unknown:
                raise TemplateDefinitionException(
                    self.name, f"task '{bp.key}' depends on unknown key(s) {unknown}"
                )
            if bp.key in bp.depends_on:
                raise TemplateDefinitionException(self.name, f"task '{bp.key}' depends on itself")
        # Raises on cycles.
        self.topological_order()

    @property
    def keys(self) -> list[str]:
        return [bp.key for bp in self.blueprints]

    def blueprint(self, key: str) -> TaskBlueprint:
        for bp in self.blueprints:
            if bp.key == key:
                return bp
        raise KeyError(key)

    def topological_order(self) -> list[str]:
        """Keys in dependency order (Kahn); ties keep declaration order."""
        indegree = {bp.key: len(set(bp.depends_on)) for bp in self.blueprints}
        dependents: dict[str, list[str]] = {bp.key: [] for bp in self.blueprints}
        for bp in self.blueprints:
            for dep in set(bp.depends_on):
                dependents[dep].append(bp.key)
        ready = [bp.key for bp in self.blueprints if indegree[bp.key] == 0]
        ordered: list[str] = []
        while ready:
            key = ready.pop(0)
            ordered.append(key)
            for child in dependents[key]:
                indegree[child] -= 1
                if indegree[child] == 0:
                    ready.append(child)
        if len(ordered) != len(self.blueprints):
            stuck = sorted(k for k, n in indegree.items() if n > 0)
            raise TemplateDefinitionException(self.name, f"dependency cycle among {stuck}")
        return ordered
