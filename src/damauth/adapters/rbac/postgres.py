"""PostgreSQL RBAC read model and catalog seeding."""

from typing import Any
from uuid import UUID

import structlog

from damauth.adapters.db.app_db import AppDatabase, database_errors
from damauth.core.rbac.catalog import (
    PERMISSION_DEFINITIONS,
    ROLE_PERMISSIONS,
    RoleName,
)
from damauth.core.rbac.types import Module, Project, ProjectMembership, Task, UserScope

logger = structlog.get_logger()


class PostgresRbacRepository:
    """Reads users, resources and memberships for permission decisions."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize the repository.

        Args:
            db: Application database instance.
        """
        self._db = db

    def _row_to_scope(self, row: dict[str, Any]) -> UserScope:
        return UserScope(
            id=row["id"],
            organization_id=row["organization_id"],
            is_active=row["is_active"],
            email=row.get("email"),
            username=row.get("username"),
        )

    async def get_user_scope(self, user_id: UUID) -> UserScope | None:
        """Get a user's organization affiliation and active flag."""
        async with database_errors("loading user scope"):
            row = await self._db.fetch_one(
                """
                SELECT id, organization_id, is_active, email, username
                FROM users WHERE id = $1
                """,
                user_id,
            )
        return self._row_to_scope(row) if row else None

    async def list_super_admins(self) -> list[UserScope]:
        """List active users without an organization."""
        async with database_errors("listing super admins"):
            rows = await self._db.fetch_all(
                """
                SELECT id, organization_id, is_active, email, username
                FROM users
                WHERE organization_id IS NULL AND is_active = true
                ORDER BY created_at
                """
            )
        return [self._row_to_scope(row) for row in rows]

    async def get_project(self, project_id: UUID) -> Project | None:
        """Get project by ID."""
        async with database_errors("loading project"):
            row = await self._db.fetch_one(
                "SELECT id, organization_id, name FROM projects WHERE id = $1",
                project_id,
            )
        if not row:
            return None
        return Project(id=row["id"], organization_id=row["organization_id"], name=row["name"])

    async def get_module(self, module_id: UUID) -> Module | None:
        """Get module by ID."""
        async with database_errors("loading module"):
            row = await self._db.fetch_one(
                "SELECT id, project_id, assigned_to FROM modules WHERE id = $1",
                module_id,
            )
        if not row:
            return None
        return Module(id=row["id"], project_id=row["project_id"], assigned_to=row["assigned_to"])

    async def get_task(self, task_id: UUID) -> Task | None:
        """Get task by ID along with its module's project."""
        async with database_errors("loading task"):
            row = await self._db.fetch_one(
                """
                SELECT t.id, t.module_id, m.project_id, t.assigned_to_id, t.created_by_id
                FROM tasks t
                JOIN modules m ON m.id = t.module_id
                WHERE t.id = $1
                """,
                task_id,
            )
        if not row:
            return None
        return Task(
            id=row["id"],
            module_id=row["module_id"],
            project_id=row["project_id"],
            assigned_to_id=row["assigned_to_id"],
            created_by_id=row["created_by_id"],
        )

    async def get_membership(self, user_id: UUID, project_id: UUID) -> ProjectMembership | None:
        """Get a user's membership with the role's current permissions."""
        async with database_errors("loading project membership"):
            row = await self._db.fetch_one(
                """
                SELECT ptm.user_id, ptm.project_id, r.name AS role,
                       COALESCE(
                           array_agg(p.name) FILTER (WHERE p.name IS NOT NULL),
                           '{}'
                       ) AS permissions
                FROM project_team_members ptm
                JOIN roles r ON r.id = ptm.role_id
                LEFT JOIN role_permissions rp ON rp.role_id = r.id
                LEFT JOIN permissions p ON p.id = rp.permission_id
                WHERE ptm.user_id = $1 AND ptm.project_id = $2
                GROUP BY ptm.user_id, ptm.project_id, r.name
                """,
                user_id,
                project_id,
            )
        if not row:
            return None
        return ProjectMembership(
            user_id=row["user_id"],
            project_id=row["project_id"],
            role=RoleName(row["role"]),
            permissions=frozenset(row["permissions"]),
        )

    async def is_org_admin(self, user_id: UUID, organization_id: UUID) -> bool:
        """Check if the user holds ADMIN on any project of the organization."""
        async with database_errors("checking organization admin"):
            result = await self._db.fetch_value(
                """
                SELECT EXISTS (
                    SELECT 1 FROM project_team_members ptm
                    JOIN projects p ON p.id = ptm.project_id
                    JOIN roles r ON r.id = ptm.role_id
                    WHERE ptm.user_id = $1 AND p.organization_id = $2 AND r.name = $3
                )
                """,
                user_id,
                organization_id,
                RoleName.ADMIN.value,
            )
        is_admin: bool = result or False
        return is_admin


async def seed_rbac(db: AppDatabase, reset: bool = False) -> None:
    """Load the role and permission catalog.

    By default only missing roles and permissions are inserted, and a role
    gets its default mappings only while it has none, so catalog edits made
    by an administrator survive a restart. With ``reset`` the catalog rows are
    overwritten and ``role_permissions`` is rebuilt to equal ``ROLE_PERMISSIONS``.

    Args:
        db: Application database.
        reset: Overwrite existing catalog rows and drop extra mappings.
    """
    on_role_conflict = (
        "DO UPDATE SET level = EXCLUDED.level, description = EXCLUDED.description"
        if reset
        else "DO NOTHING"
    )
    on_permission_conflict = (
        "DO UPDATE SET resource = EXCLUDED.resource, action = EXCLUDED.action, "
        "description = EXCLUDED.description"
        if reset
        else "DO NOTHING"
    )

    async with database_errors("seeding rbac catalog"), db.transaction() as conn:
        for role in RoleName:
            await conn.execute(
                f"""
                INSERT INTO roles (name, level, description)
                VALUES ($1, $2, $3)
                ON CONFLICT (name) {on_role_conflict}
                """,
                role.value,
                role.level,
                role.description,
            )

        for permission, (resource, action, description) in PERMISSION_DEFINITIONS.items():
            await conn.execute(
                f"""
                INSERT INTO permissions (name, resource, action, description)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (name) {on_permission_conflict}
                """,
                permission.value,
                resource,
                action,
                description,
            )

        if reset:
            await conn.execute("DELETE FROM role_permissions")
        for role, permissions in ROLE_PERMISSIONS.items():
            await conn.execute(
                """
                INSERT INTO role_permissions (role_id, permission_id)
                SELECT r.id, p.id FROM roles r, permissions p
                WHERE r.name = $1 AND p.name = ANY($2::text[])
                  AND NOT EXISTS (
                      SELECT 1 FROM role_permissions rp WHERE rp.role_id = r.id
                  )
                """,
                role.value,
                sorted(p.value for p in permissions),
            )

    logger.info(
        "rbac_catalog_seeded",
        roles=len(RoleName),
        permissions=len(PERMISSION_DEFINITIONS),
        reset=reset,
    )
