"""API middleware."""

from damauth.entrypoints.api.middleware.jwt_auth import (
    AuthContext,
    CurrentUser,
    authenticate,
)
from damauth.entrypoints.api.middleware.rbac import (
    RequireSuperAdmin,
    require_module_access,
    require_org_access,
    require_permission,
    require_project_access,
    require_super_admin,
    require_task_delete_permission,
    require_task_update_permission,
    resolve_resource_id,
)

__all__ = [
    # Authentication
    "AuthContext",
    "CurrentUser",
    "authenticate",
    # Authorization
    "RequireSuperAdmin",
    "require_super_admin",
    "require_org_access",
    "require_project_access",
    "require_module_access",
    "require_permission",
    "require_task_update_permission",
    "require_task_delete_permission",
    "resolve_resource_id",
]
