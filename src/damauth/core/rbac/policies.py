"""Closed dispatch table from permission kinds to their checks.

Every ``PermissionKind`` maps to exactly one ``Policy`` naming the resource
the check is scoped to and the ``PermissionService`` call that decides it.
The table is verified complete at import time.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from damauth.core.rbac.catalog import PermissionName
from damauth.core.rbac.permission_service import PermissionService


class PermissionKind(str, Enum):
    """Permission kinds routes can demand."""

    CREATE_PROJECT = "create_project"
    UPDATE_ORGANIZATION = "update_organization"
    MANAGE_ORG_USERS = "manage_org_users"
    CREATE_MODULE = "create_module"
    UPDATE_PROJECT = "update_project"
    DELETE_PROJECT = "delete_project"
    CREATE_TASK = "create_task"
    UPLOAD_ASSET = "upload_asset"
    APPROVE_ASSET = "approve_asset"
    REJECT_ASSET = "reject_asset"
    FINALIZE_ASSET = "finalize_asset"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"
    MANAGE_MODULE = "manage_module"
    VIEW_PROJECT_ANALYTICS = "view_project_analytics"
    VIEW_ORG_ANALYTICS = "view_org_analytics"

    @property
    def label(self) -> str:
        """Human readable form, e.g. ``create project``."""
        return self.value.replace("_", " ")


class ResourceScope(str, Enum):
    """Kind of resource id a policy is evaluated against."""

    ORGANIZATION = "organization"
    PROJECT = "project"
    MODULE = "module"
    TASK = "task"

    @property
    def id_field(self) -> str:
        """Request field carrying the resource id, e.g. ``projectId``."""
        return f"{self.value}Id"


Check = Callable[[PermissionService, UUID, UUID], Awaitable[bool]]


@dataclass(frozen=True)
class Policy:
    """A scoped permission check."""

    scope: ResourceScope
    check: Check


def _project_permission(permission: PermissionName) -> Check:
    async def check(service: PermissionService, user_id: UUID, project_id: UUID) -> bool:
        return await service.has_permission(user_id, project_id, permission)

    return check


async def _org_admin(service: PermissionService, user_id: UUID, organization_id: UUID) -> bool:
    return await service.is_org_admin(user_id, organization_id)


_ORG = ResourceScope.ORGANIZATION
_PROJECT = ResourceScope.PROJECT
_MODULE = ResourceScope.MODULE
_TASK = ResourceScope.TASK

POLICIES: dict[PermissionKind, Policy] = {
    PermissionKind.CREATE_PROJECT: Policy(_ORG, _org_admin),
    PermissionKind.UPDATE_ORGANIZATION: Policy(_ORG, _org_admin),
    PermissionKind.MANAGE_ORG_USERS: Policy(_ORG, _org_admin),
    PermissionKind.CREATE_MODULE: Policy(
        _PROJECT, _project_permission(PermissionName.CREATE_MODULE)
    ),
    PermissionKind.UPDATE_PROJECT: Policy(
        _PROJECT, _project_permission(PermissionName.UPDATE_PROJECT)
    ),
    PermissionKind.DELETE_PROJECT: Policy(
        _PROJECT, _project_permission(PermissionName.DELETE_PROJECT)
    ),
    PermissionKind.CREATE_TASK: Policy(_MODULE, PermissionService.can_create_task),
    PermissionKind.UPLOAD_ASSET: Policy(_MODULE, PermissionService.can_upload_asset),
    PermissionKind.APPROVE_ASSET: Policy(_TASK, PermissionService.can_approve_asset),
    PermissionKind.REJECT_ASSET: Policy(_TASK, PermissionService.can_reject_asset),
    PermissionKind.FINALIZE_ASSET: Policy(_TASK, PermissionService.can_finalize_asset),
    PermissionKind.UPDATE_TASK: Policy(_TASK, PermissionService.can_update_task),
    PermissionKind.DELETE_TASK: Policy(_TASK, PermissionService.can_delete_task),
    PermissionKind.MANAGE_MODULE: Policy(_MODULE, PermissionService.can_manage_module),
    PermissionKind.VIEW_PROJECT_ANALYTICS: Policy(
        _PROJECT, PermissionService.can_view_project_analytics
    ),
    PermissionKind.VIEW_ORG_ANALYTICS: Policy(_ORG, PermissionService.can_view_org_analytics),
}

_missing = set(PermissionKind) - POLICIES.keys()
if _missing:
    raise RuntimeError(f"No policy for permission kinds: {sorted(k.value for k in _missing)}")


def policy_for(kind: PermissionKind) -> Policy:
    """Get the policy for a permission kind."""
    return POLICIES[kind]


async def evaluate(
    kind: PermissionKind,
    service: PermissionService,
    user_id: UUID,
    resource_id: UUID,
) -> bool:
    """Evaluate a permission kind against a resource.

    Args:
        kind: The permission kind to check.
        service: Permission engine.
        user_id: The acting user.
        resource_id: Id of the resource in the policy's scope.

    Returns:
        True if allowed.
    """
    return await POLICIES[kind].check(service, user_id, resource_id)
