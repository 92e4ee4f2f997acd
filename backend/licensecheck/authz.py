"""Authorization policies.

Every collaborator that writes verification state receives a policy object and
asks it before acting. The initial deployment allows everything; a role-based
policy can replace it without touching the verification core.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

SYSTEM_ACTOR = "system"


class PolicyDenied(PermissionError):
    """Raised when the active policy rejects an action."""

    def __init__(self, actor: str, action: str, resource: Optional[str] = None):
        self.actor = actor
        self.action = action
        self.resource = resource
        super().__init__(f"{actor} may not {action} {resource or ''}".strip())


class AuthorizationPolicy(Protocol):
    def authorize(self, actor: str, action: str, resource: Optional[str] = None) -> None:
        """Return normally when allowed, raise PolicyDenied otherwise."""
        ...


class AllowAllPolicy:
    """Every actor may perform every action."""

    def authorize(self, actor: str, action: str, resource: Optional[str] = None) -> None:
        return None


@dataclass
class ActionAllowListPolicy:
    """Allow only the listed actions, regardless of actor."""

    allowed_actions: frozenset[str]

    def authorize(self, actor: str, action: str, resource: Optional[str] = None) -> None:
        if action not in self.allowed_actions:
            raise PolicyDenied(actor, action, resource)


# Actions checked by the verification core
RECORD_VERIFICATION = "verification:record"
MANAGE_TASKS = "task:write"
RUN_JOB = "job:run"
