"""Fixtures for RBAC tests."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from damauth.core.rbac.catalog import RoleName, role_permission_names
from damauth.core.rbac.permission_service import PermissionService
from damauth.core.rbac.types import Module, Project, ProjectMembership, Task, UserScope


class RbacWorld:
    """Mutable RBAC state served through a mocked repository."""

    def __init__(self) -> None:
        self.org_id = uuid4()
        self.users: dict[UUID, UserScope] = {}
        self.projects: dict[UUID, Project] = {}
        self.modules: dict[UUID, Module] = {}
        self.tasks: dict[UUID, Task] = {}
        self.memberships: dict[tuple[UUID, UUID], ProjectMembership] = {}

        self.repo = MagicMock()
        self.repo.get_user_scope = AsyncMock(side_effect=self.users.get)
        self.repo.get_project = AsyncMock(side_effect=self.projects.get)
        self.repo.get_module = AsyncMock(side_effect=self.modules.get)
        self.repo.get_task = AsyncMock(side_effect=self.tasks.get)
        self.repo.get_membership = AsyncMock(
            side_effect=lambda user_id, project_id: self.memberships.get((user_id, project_id))
        )
        self.repo.is_org_admin = AsyncMock(side_effect=self._is_org_admin)
        self.repo.list_super_admins = AsyncMock(
            side_effect=lambda: [
                u for u in self.users.values() if u.is_active and u.organization_id is None
            ]
        )

    def _is_org_admin(self, user_id: UUID, organization_id: UUID) -> bool:
        return any(
            m.user_id == user_id
            and m.role == RoleName.ADMIN
            and self.projects[m.project_id].organization_id == organization_id
            for m in self.memberships.values()
        )

    def user(self, organization_id: UUID | None = None, is_active: bool = True) -> UUID:
        user_id = uuid4()
        self.users[user_id] = UserScope(
            id=user_id, organization_id=organization_id, is_active=is_active
        )
        return user_id

    def project(self, organization_id: UUID | None = None) -> UUID:
        project_id = uuid4()
        self.projects[project_id] = Project(id=project_id, organization_id=organization_id)
        return project_id

    def module(self, project_id: UUID, assigned_to: UUID | None = None) -> UUID:
        module_id = uuid4()
        self.modules[module_id] = Module(
            id=module_id, project_id=project_id, assigned_to=assigned_to
        )
        return module_id

    def task(
        self,
        module_id: UUID,
        assigned_to_id: UUID | None = None,
        created_by_id: UUID | None = None,
    ) -> UUID:
        task_id = uuid4()
        self.tasks[task_id] = Task(
            id=task_id,
            module_id=module_id,
            project_id=self.modules[module_id].project_id,
            assigned_to_id=assigned_to_id,
            created_by_id=created_by_id,
        )
        return task_id

    def grant(
        self,
        user_id: UUID,
        project_id: UUID,
        role: RoleName,
        permissions: frozenset[str] | None = None,
    ) -> None:
        self.memberships[(user_id, project_id)] = ProjectMembership(
            user_id=user_id,
            project_id=project_id,
            role=role,
            permissions=role_permission_names(role) if permissions is None else permissions,
        )


@pytest.fixture
def world() -> RbacWorld:
    """Return empty RBAC state."""
    return RbacWorld()


@pytest.fixture
def service(world: RbacWorld) -> PermissionService:
    """Return a permission service over the world's repository."""
    return PermissionService(world.repo)


@pytest.fixture
def org_project(world: RbacWorld) -> UUID:
    """Return a project owned by the world's organization."""
    return world.project(world.org_id)


@pytest.fixture
def member_of(world: RbacWorld, org_project: UUID) -> Callable[[RoleName], UUID]:
    """Create an org user holding a role on ``org_project``."""

    def _make(role: RoleName) -> UUID:
        user_id = world.user(world.org_id)
        world.grant(user_id, org_project, role)
        return user_id

    return _make
