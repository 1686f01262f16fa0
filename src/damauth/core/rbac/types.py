"""RBAC domain types."""

from dataclasses import dataclass, field
from uuid import UUID

from damauth.core.rbac.catalog import RoleName


@dataclass(frozen=True)
class UserScope:
    """The slice of a user the permission engine needs."""

    id: UUID
    organization_id: UUID | None
    is_active: bool
    email: str | None = None
    username: str | None = None


@dataclass(frozen=True)
class Project:
    """A project, optionally owned by an organization."""

    id: UUID
    organization_id: UUID | None
    name: str | None = None


@dataclass(frozen=True)
class Module:
    """A module inside a project."""

    id: UUID
    project_id: UUID
    assigned_to: UUID | None = None


@dataclass(frozen=True)
class Task:
    """A task inside a module. ``project_id`` is the module's project."""

    id: UUID
    module_id: UUID
    project_id: UUID
    assigned_to_id: UUID | None = None
    created_by_id: UUID | None = None


@dataclass(frozen=True)
class ProjectMembership:
    """A user's role on a project with the role's current permissions."""

    user_id: UUID
    project_id: UUID
    role: RoleName
    permissions: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class AssignmentDecision:
    """Outcome of an assignment check.

    ``reason`` is user-facing and only set when ``allowed`` is False.
    """

    allowed: bool
    reason: str | None = None
