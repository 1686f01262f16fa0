"""RBAC dependencies for route handlers.

Each dependency authenticates the request, resolves the resource id the
check is scoped to and asks the permission service for a decision.

Usage:
    @router.patch("/projects/{project_id}")
    async def update_project(
        auth: Annotated[AuthContext, Depends(require_permission(PermissionKind.UPDATE_PROJECT))],
    ):
        ...
"""

from collections.abc import Callable
from json import JSONDecodeError
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import Depends, Request

from damauth.core.exceptions import Forbidden, ValidationFailed
from damauth.core.rbac.permission_service import PermissionService
from damauth.core.rbac.policies import PermissionKind, ResourceScope, evaluate, policy_for
from damauth.entrypoints.api.deps import get_permission_service
from damauth.entrypoints.api.middleware.jwt_auth import AuthContext, authenticate

logger = structlog.get_logger()

Permissions = Annotated[PermissionService, Depends(get_permission_service)]
Authenticated = Annotated[AuthContext, Depends(authenticate)]


async def _json_body(request: Request) -> dict[str, Any]:
    if "application/json" not in request.headers.get("content-type", ""):
        return {}
    try:
        body = await request.json()
    except (JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


async def resolve_resource_id(
    request: Request,
    scope: ResourceScope,
    fallback: UUID | None = None,
) -> UUID:
    """Find the id of a scoped resource in the request.

    Looks in path params, then the JSON body, then the query string, under
    both ``project_id`` and ``projectId`` spellings.

    Args:
        request: The current request.
        scope: Which resource id to look for.
        fallback: Value used when the request carries no id.

    Returns:
        The resource id.

    Raises:
        ValidationFailed: If the id is missing or not a valid UUID.
    """
    keys = (f"{scope.value}_id", scope.id_field)
    body = await _json_body(request)

    raw: Any = None
    for source in (request.path_params, body, request.query_params):
        raw = next((source[k] for k in keys if source.get(k)), None)
        if raw is not None:
            break

    label = scope.value.capitalize()
    if raw is None:
        if fallback is not None:
            return fallback
        raise ValidationFailed(f"{label} ID required")

    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationFailed(f"Invalid {scope.value} ID") from None


async def require_super_admin(auth: Authenticated, permissions: Permissions) -> AuthContext:
    """Require an active user without an organization."""
    if not await permissions.is_super_admin(auth.user_id):
        raise Forbidden("Super Admin access required")
    return auth


async def require_org_access(
    request: Request, auth: Authenticated, permissions: Permissions
) -> AuthContext:
    """Require membership of the organization named in the request."""
    organization_id = await resolve_resource_id(request, ResourceScope.ORGANIZATION)
    if not await permissions.can_access_organization(auth.user_id, organization_id):
        raise Forbidden("Access denied to this organization")
    return auth


async def require_project_access(
    request: Request, auth: Authenticated, permissions: Permissions
) -> AuthContext:
    """Require membership of the project named in the request."""
    project_id = await resolve_resource_id(request, ResourceScope.PROJECT)
    if not await permissions.can_access_project(auth.user_id, project_id):
        raise Forbidden("Not a member of this project")
    request.state.project_id = project_id
    return auth


async def require_module_access(
    request: Request, auth: Authenticated, permissions: Permissions
) -> AuthContext:
    """Require membership of the project owning the module named in the request."""
    module_id = await resolve_resource_id(request, ResourceScope.MODULE)
    if not await permissions.can_access_module(auth.user_id, module_id):
        raise Forbidden("Access denied to this module")
    return auth


def require_permission(kind: PermissionKind) -> Callable[..., Any]:
    """Dependency to require a permission kind.

    The resource id is resolved for the kind's scope. Organization checks
    fall back to the user's own organization and project checks to a
    project id set by ``require_project_access``.

    Args:
        kind: Required permission kind.

    Returns:
        Dependency function that evaluates the policy.
    """
    policy = policy_for(kind)

    async def permission_checker(
        request: Request, auth: Authenticated, permissions: Permissions
    ) -> AuthContext:
        fallback: UUID | None = None
        if policy.scope is ResourceScope.ORGANIZATION:
            fallback = auth.organization_id
        elif policy.scope is ResourceScope.PROJECT:
            fallback = getattr(request.state, "project_id", None)

        resource_id = await resolve_resource_id(request, policy.scope, fallback)

        if not await evaluate(kind, permissions, auth.user_id, resource_id):
            logger.warning(
                "permission_denied",
                user_id=str(auth.user_id),
                permission=kind.value,
                route=request.url.path,
            )
            raise Forbidden(f"You don't have permission to {kind.label}")
        return auth

    return permission_checker


async def require_task_update_permission(
    request: Request, auth: Authenticated, permissions: Permissions
) -> AuthContext:
    """Require the right to update the task named in the request."""
    task_id = await resolve_resource_id(request, ResourceScope.TASK)
    if not await permissions.can_update_task(auth.user_id, task_id):
        raise Forbidden("You cannot update this task")
    return auth


async def require_task_delete_permission(
    request: Request, auth: Authenticated, permissions: Permissions
) -> AuthContext:
    """Require the right to delete the task named in the request."""
    task_id = await resolve_resource_id(request, ResourceScope.TASK)
    if not await permissions.can_delete_task(auth.user_id, task_id):
        raise Forbidden("You cannot delete this task")
    return auth


RequireSuperAdmin = Annotated[AuthContext, Depends(require_super_admin)]
