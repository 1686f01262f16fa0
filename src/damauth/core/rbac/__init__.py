"""Role-based access control domain."""

from damauth.core.rbac.catalog import (
    PERMISSION_DEFINITIONS,
    ROLE_PERMISSIONS,
    PermissionName,
    RoleName,
    permission_key,
    role_permission_names,
)
from damauth.core.rbac.permission_service import PermissionService
from damauth.core.rbac.policies import POLICIES, PermissionKind, Policy, ResourceScope, evaluate
from damauth.core.rbac.repository import RbacRepository
from damauth.core.rbac.types import (
    AssignmentDecision,
    Module,
    Project,
    ProjectMembership,
    Task,
    UserScope,
)

__all__ = [
    "POLICIES",
    "PERMISSION_DEFINITIONS",
    "ROLE_PERMISSIONS",
    "AssignmentDecision",
    "Module",
    "PermissionKind",
    "PermissionName",
    "PermissionService",
    "Policy",
    "Project",
    "ProjectMembership",
    "RbacRepository",
    "ResourceScope",
    "RoleName",
    "Task",
    "UserScope",
    "evaluate",
    "permission_key",
    "role_permission_names",
]
