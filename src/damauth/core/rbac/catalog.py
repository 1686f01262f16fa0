"""Role and permission catalog.

Roles are scoped to a project membership. Each role owns a set of
permissions through the role_permissions mapping table; ``ROLE_PERMISSIONS``
is the default content of that table, written by ``seed_rbac``.
"""

from enum import Enum


class RoleName(str, Enum):
    """Project roles."""

    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    LEAD = "LEAD"
    MEMBER = "MEMBER"
    REVIEWER = "REVIEWER"

    @property
    def level(self) -> int:
        """Role level, 1 being the most privileged."""
        return ROLE_LEVELS[self]

    @property
    def description(self) -> str:
        """Human readable description."""
        return ROLE_DESCRIPTIONS[self]


ROLE_LEVELS: dict[RoleName, int] = {
    RoleName.ADMIN: 1,
    RoleName.MANAGER: 2,
    RoleName.LEAD: 3,
    RoleName.MEMBER: 4,
    RoleName.REVIEWER: 5,
}

ROLE_DESCRIPTIONS: dict[RoleName, str] = {
    RoleName.ADMIN: "Organization administrator with full control",
    RoleName.MANAGER: "Project manager who oversees projects and modules",
    RoleName.LEAD: "Team lead who creates and manages tasks",
    RoleName.MEMBER: "Team member who executes tasks",
    RoleName.REVIEWER: "Reviewer who approves or rejects assets",
}


class PermissionName(str, Enum):
    """Named (resource, action) permissions."""

    VIEW_ORGANIZATION = "view_organization"
    UPDATE_ORGANIZATION = "update_organization"
    MANAGE_ORG_USERS = "manage_org_users"

    CREATE_PROJECT = "create_project"
    VIEW_PROJECT = "view_project"
    UPDATE_PROJECT = "update_project"
    DELETE_PROJECT = "delete_project"
    ARCHIVE_PROJECT = "archive_project"
    MANAGE_PROJECT_TEAM = "manage_project_team"

    CREATE_MODULE = "create_module"
    VIEW_MODULE = "view_module"
    UPDATE_MODULE = "update_module"
    DELETE_MODULE = "delete_module"

    CREATE_TASK = "create_task"
    VIEW_TASK = "view_task"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"
    ASSIGN_TASK = "assign_task"

    UPLOAD_ASSET = "upload_asset"
    VIEW_ASSET = "view_asset"
    UPDATE_ASSET = "update_asset"
    DELETE_ASSET = "delete_asset"
    APPROVE_ASSET = "approve_asset"
    REJECT_ASSET = "reject_asset"
    FINALIZE_ASSET = "finalize_asset"

    VIEW_ORG_ANALYTICS = "view_org_analytics"
    VIEW_PROJECT_ANALYTICS = "view_project_analytics"

    LOG_TIME = "log_time"

    @property
    def resource(self) -> str:
        """Resource part of the permission."""
        return PERMISSION_DEFINITIONS[self][0]

    @property
    def action(self) -> str:
        """Action part of the permission."""
        return PERMISSION_DEFINITIONS[self][1]


P = PermissionName

# name -> (resource, action, description)
PERMISSION_DEFINITIONS: dict[PermissionName, tuple[str, str, str]] = {
    P.VIEW_ORGANIZATION: ("organization", "view", "View organization details"),
    P.UPDATE_ORGANIZATION: ("organization", "update", "Update organization settings"),
    P.MANAGE_ORG_USERS: ("organization", "manage_users", "Manage organization users"),
    P.CREATE_PROJECT: ("project", "create", "Create new projects"),
    P.VIEW_PROJECT: ("project", "view", "View project details"),
    P.UPDATE_PROJECT: ("project", "update", "Update project details"),
    P.DELETE_PROJECT: ("project", "delete", "Delete projects"),
    P.ARCHIVE_PROJECT: ("project", "archive", "Archive projects"),
    P.MANAGE_PROJECT_TEAM: ("project", "manage_team", "Add/remove project members"),
    P.CREATE_MODULE: ("module", "create", "Create new modules"),
    P.VIEW_MODULE: ("module", "view", "View module details"),
    P.UPDATE_MODULE: ("module", "update", "Update module details"),
    P.DELETE_MODULE: ("module", "delete", "Delete modules"),
    P.CREATE_TASK: ("task", "create", "Create manual tasks"),
    P.VIEW_TASK: ("task", "view", "View task details"),
    P.UPDATE_TASK: ("task", "update", "Update task details"),
    P.DELETE_TASK: ("task", "delete", "Delete tasks"),
    P.ASSIGN_TASK: ("task", "assign", "Assign tasks to team members"),
    P.UPLOAD_ASSET: ("asset", "upload", "Upload files"),
    P.VIEW_ASSET: ("asset", "view", "View assets"),
    P.UPDATE_ASSET: ("asset", "update", "Update asset metadata"),
    P.DELETE_ASSET: ("asset", "delete", "Delete assets"),
    P.APPROVE_ASSET: ("asset", "approve", "Approve assets"),
    P.REJECT_ASSET: ("asset", "reject", "Reject assets"),
    P.FINALIZE_ASSET: ("asset", "finalize", "Mark assets as final"),
    P.VIEW_ORG_ANALYTICS: ("analytics", "view_org", "View organization analytics"),
    P.VIEW_PROJECT_ANALYTICS: ("analytics", "view_project", "View project analytics"),
    P.LOG_TIME: ("time", "log", "Log time on tasks"),
}


def permission_key(permission: "PermissionName | str") -> str:
    """Plain string name of a permission."""
    return permission.value if isinstance(permission, PermissionName) else permission


def role_permission_names(role: RoleName) -> frozenset[str]:
    """Default permission names granted to a role."""
    return frozenset(p.value for p in ROLE_PERMISSIONS[role])


ROLE_PERMISSIONS: dict[RoleName, frozenset[PermissionName]] = {
    RoleName.ADMIN: frozenset(PermissionName),
    RoleName.MANAGER: frozenset(
        {
            P.VIEW_ORGANIZATION,
            P.VIEW_PROJECT,
            P.UPDATE_PROJECT,
            P.ARCHIVE_PROJECT,
            P.MANAGE_PROJECT_TEAM,
            P.CREATE_MODULE,
            P.VIEW_MODULE,
            P.UPDATE_MODULE,
            P.DELETE_MODULE,
            P.CREATE_TASK,
            P.VIEW_TASK,
            P.UPDATE_TASK,
            P.DELETE_TASK,
            P.ASSIGN_TASK,
            P.UPLOAD_ASSET,
            P.VIEW_ASSET,
            P.UPDATE_ASSET,
            P.DELETE_ASSET,
            P.APPROVE_ASSET,
            P.REJECT_ASSET,
            P.FINALIZE_ASSET,
            P.VIEW_PROJECT_ANALYTICS,
            P.LOG_TIME,
        }
    ),
    RoleName.LEAD: frozenset(
        {
            P.VIEW_ORGANIZATION,
            P.VIEW_PROJECT,
            P.VIEW_MODULE,
            P.CREATE_TASK,
            P.VIEW_TASK,
            P.UPDATE_TASK,
            P.DELETE_TASK,
            P.ASSIGN_TASK,
            P.UPLOAD_ASSET,
            P.VIEW_ASSET,
            P.UPDATE_ASSET,
            P.DELETE_ASSET,
            P.LOG_TIME,
        }
    ),
    RoleName.MEMBER: frozenset(
        {
            P.VIEW_ORGANIZATION,
            P.VIEW_PROJECT,
            P.VIEW_MODULE,
            P.VIEW_TASK,
            P.UPDATE_TASK,
            P.ASSIGN_TASK,
            P.UPLOAD_ASSET,
            P.VIEW_ASSET,
            P.UPDATE_ASSET,
            P.DELETE_ASSET,
            P.LOG_TIME,
        }
    ),
    RoleName.REVIEWER: frozenset(
        {
            P.VIEW_ORGANIZATION,
            P.VIEW_PROJECT,
            P.VIEW_MODULE,
            P.VIEW_TASK,
            P.ASSIGN_TASK,
            P.VIEW_ASSET,
            P.APPROVE_ASSET,
            P.REJECT_ASSET,
            P.FINALIZE_ASSET,
        }
    ),
}
