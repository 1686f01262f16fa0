"""Permission evaluation service."""

import asyncio
from uuid import UUID

import structlog

from damauth.core.rbac.catalog import PermissionName, RoleName, permission_key
from damauth.core.rbac.repository import RbacRepository
from damauth.core.rbac.types import AssignmentDecision, ProjectMembership, UserScope

logger = structlog.get_logger()


class PermissionService:
    """Service for evaluating project-scoped permissions.

    Decisions always re-read membership and role state through the repository,
    so a role or permission change takes effect on the next call.
    """

    def __init__(self, repo: RbacRepository) -> None:
        """Initialize the service.

        Args:
            repo: RBAC read model.
        """
        self._repo = repo

    async def is_super_admin(self, user_id: UUID) -> bool:
        """Check if user is an active principal without an organization."""
        scope = await self._repo.get_user_scope(user_id)
        if scope is None:
            return False
        return scope.is_active and scope.organization_id is None

    async def get_super_admins(self) -> list[UserScope]:
        """List all active super-admins."""
        return await self._repo.list_super_admins()

    async def get_effective_permissions(self, user_id: UUID, project_id: UUID) -> frozenset[str]:
        """Get the permission names the user's project role grants.

        Returns:
            The role's permissions, or an empty set when the user is not a member.
        """
        membership = await self._repo.get_membership(user_id, project_id)
        if membership is None:
            return frozenset()
        return membership.permissions

    async def has_permission(
        self,
        user_id: UUID,
        project_id: UUID,
        permission: PermissionName | str,
    ) -> bool:
        """Check if user holds a permission on a project.

        Super-admins pass on projects outside any organization and are denied
        on projects an organization owns. Everyone else needs a membership
        whose role grants the permission.

        Args:
            user_id: The user to check.
            project_id: The project the permission applies to.
            permission: Permission name.

        Returns:
            True if the permission is held.
        """
        if await self.is_super_admin(user_id):
            project = await self._repo.get_project(project_id)
            if project is not None and project.organization_id is not None:
                logger.warning(
                    "super_admin_cross_org_denied",
                    user_id=str(user_id),
                    project_id=str(project_id),
                )
                return False
            return True

        permissions = await self.get_effective_permissions(user_id, project_id)
        return permission_key(permission) in permissions

    async def is_project_member(self, user_id: UUID, project_id: UUID) -> bool:
        """Check if user has a membership on the project."""
        return await self._repo.get_membership(user_id, project_id) is not None

    async def get_user_project_role(
        self, user_id: UUID, project_id: UUID
    ) -> ProjectMembership | None:
        """Get user's membership (role and its permissions) on a project."""
        return await self._repo.get_membership(user_id, project_id)

    async def is_org_admin(self, user_id: UUID, organization_id: UUID) -> bool:
        """Check if user is ADMIN on any project of the organization."""
        return await self._repo.is_org_admin(user_id, organization_id)

    async def can_access_organization(self, user_id: UUID, organization_id: UUID) -> bool:
        """Check if user belongs to the organization."""
        scope = await self._repo.get_user_scope(user_id)
        return scope is not None and scope.organization_id == organization_id

    async def can_access_project(self, user_id: UUID, project_id: UUID) -> bool:
        """Check if user can access a project."""
        return await self.is_project_member(user_id, project_id)

    async def can_manage_project(self, user_id: UUID, project_id: UUID) -> bool:
        """Check if user can update a project."""
        return await self.has_permission(user_id, project_id, PermissionName.UPDATE_PROJECT)

    async def can_delete_project(self, user_id: UUID, project_id: UUID) -> bool:
        """Check if user can delete a project."""
        return await self.has_permission(user_id, project_id, PermissionName.DELETE_PROJECT)

    async def can_access_module(self, user_id: UUID, module_id: UUID) -> bool:
        """Check if user is a member of the module's project."""
        module = await self._repo.get_module(module_id)
        if module is None:
            return False
        return await self.is_project_member(user_id, module.project_id)

    async def can_manage_module(self, user_id: UUID, module_id: UUID) -> bool:
        """Check if user can manage a module.

        Requires update_module. A MANAGER must also be the module's assignee;
        any other role passes only as ADMIN.
        """
        module = await self._repo.get_module(module_id)
        if module is None:
            return False

        if not await self.has_permission(user_id, module.project_id, PermissionName.UPDATE_MODULE):
            return False

        membership = await self.get_user_project_role(user_id, module.project_id)
        if membership is None:
            return False
        if membership.role == RoleName.MANAGER:
            return module.assigned_to == user_id
        return membership.role == RoleName.ADMIN

    async def can_create_task(self, user_id: UUID, module_id: UUID) -> bool:
        """Check if user can create tasks in a module."""
        module = await self._repo.get_module(module_id)
        if module is None:
            return False
        return await self.has_permission(user_id, module.project_id, PermissionName.CREATE_TASK)

    async def can_assign_task(
        self, user_id: UUID, task_id: UUID, target_user_id: UUID
    ) -> AssignmentDecision:
        """Check if user can assign a task to another user.

        Both the acting user and the target must be members of the task's
        project.

        Returns:
            Decision with a user-facing reason when denied.
        """
        task = await self._repo.get_task(task_id)
        if task is None:
            return AssignmentDecision(allowed=False, reason="Task not found")

        user_is_member, target_is_member = await asyncio.gather(
            self.is_project_member(user_id, task.project_id),
            self.is_project_member(target_user_id, task.project_id),
        )

        if not user_is_member:
            return AssignmentDecision(allowed=False, reason="You are not a project member")
        if not target_is_member:
            return AssignmentDecision(
                allowed=False, reason="Target user is not a project member"
            )
        return AssignmentDecision(allowed=True)

    async def can_update_task(self, user_id: UUID, task_id: UUID) -> bool:
        """Check if user can update a task.

        Requires update_task. A MEMBER may only update tasks assigned to them.
        """
        task = await self._repo.get_task(task_id)
        if task is None:
            return False

        if not await self.has_permission(user_id, task.project_id, PermissionName.UPDATE_TASK):
            return False

        membership = await self.get_user_project_role(user_id, task.project_id)
        if membership is not None and membership.role == RoleName.MEMBER:
            return task.assigned_to_id == user_id
        return True

    async def can_delete_task(self, user_id: UUID, task_id: UUID) -> bool:
        """Check if user can delete a task.

        Requires delete_task. A LEAD may only delete tasks they created.
        """
        task = await self._repo.get_task(task_id)
        if task is None:
            return False

        if not await self.has_permission(user_id, task.project_id, PermissionName.DELETE_TASK):
            return False

        membership = await self.get_user_project_role(user_id, task.project_id)
        if membership is not None and membership.role == RoleName.LEAD:
            return task.created_by_id == user_id
        return True

    async def can_upload_asset(self, user_id: UUID, module_id: UUID) -> bool:
        """Check if user can upload assets into a module."""
        module = await self._repo.get_module(module_id)
        if module is None:
            return False
        return await self.has_permission(user_id, module.project_id, PermissionName.UPLOAD_ASSET)

    async def can_approve_asset(self, user_id: UUID, task_id: UUID) -> bool:
        """Check if user can approve assets on a task."""
        return await self._task_permission(user_id, task_id, PermissionName.APPROVE_ASSET)

    async def can_reject_asset(self, user_id: UUID, task_id: UUID) -> bool:
        """Check if user can reject assets on a task."""
        return await self._task_permission(user_id, task_id, PermissionName.REJECT_ASSET)

    async def can_finalize_asset(self, user_id: UUID, task_id: UUID) -> bool:
        """Check if user can mark assets on a task as final."""
        return await self._task_permission(user_id, task_id, PermissionName.FINALIZE_ASSET)

    async def can_view_org_analytics(self, user_id: UUID, organization_id: UUID) -> bool:
        """Check if user can view organization analytics."""
        return await self.is_org_admin(user_id, organization_id)

    async def can_view_project_analytics(self, user_id: UUID, project_id: UUID) -> bool:
        """Check if user can view project analytics."""
        return await self.has_permission(
            user_id, project_id, PermissionName.VIEW_PROJECT_ANALYTICS
        )

    async def _task_permission(
        self, user_id: UUID, task_id: UUID, permission: PermissionName
    ) -> bool:
        task = await self._repo.get_task(task_id)
        if task is None:
            return False
        return await self.has_permission(user_id, task.project_id, permission)
