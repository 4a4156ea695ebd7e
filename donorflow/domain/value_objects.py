"""Domain value objects."""

from dataclasses import dataclass

from donorflow.domain.enums import ActorType, AssignedRole


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation.

    Users carry the role from their verified token. System actors (the
    signing webhook, the reconciler) are trusted callers and bypass
    per-task permission checks.
    """

    user_id: str
    role: AssignedRole | None = None
    actor_type: ActorType = ActorType.USER
    display_name: str | None = None

    @property
    def is_system(self) -> bool:
        return self.actor_type is ActorType.SYSTEM

    @classmethod
    def system(cls, name: str) -> "Actor":
        return cls(user_id=name, actor_type=ActorType.SYSTEM, display_name=name)
