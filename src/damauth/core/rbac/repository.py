"""RBAC read-model protocol."""

from typing import Protocol, runtime_checkable
from uuid import UUID

from damauth.core.rbac.types import Module, Project, ProjectMembership, Task, UserScope


@runtime_checkable
class RbacRepository(Protocol):
    """Reads the membership, role and resource state behind permission decisions.

    Every call must hit current state; implementations must not cache.
    """

    async def get_user_scope(self, user_id: UUID) -> UserScope | None:
        """Get a user's organization affiliation and active flag."""
        ...

    async def list_super_admins(self) -> list[UserScope]:
        """List active users without an organization."""
        ...

    async def get_project(self, project_id: UUID) -> Project | None:
        """Get project by ID."""
        ...

    async def get_module(self, module_id: UUID) -> Module | None:
        """Get module by ID."""
        ...

    async def get_task(self, task_id: UUID) -> Task | None:
        """Get task by ID, including its module's project."""
        ...

    async def get_membership(self, user_id: UUID, project_id: UUID) -> ProjectMembership | None:
        """Get a user's membership on a project with the role's permissions."""
        ...

    async def is_org_admin(self, user_id: UUID, organization_id: UUID) -> bool:
        """Check if the user holds ADMIN on any project of the organization."""
        ...
