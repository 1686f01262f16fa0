"""Unit tests for the PostgreSQL RBAC repository."""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import asyncpg
import pytest
from damauth.adapters.rbac.postgres import PostgresRbacRepository, seed_rbac
from damauth.core.exceptions import PersistenceError
from damauth.core.rbac.catalog import PERMISSION_DEFINITIONS, RoleName
from damauth.core.rbac.repository import RbacRepository


@pytest.fixture
def mock_db() -> MagicMock:
    """Return a mock AppDatabase."""
    db = MagicMock()
    db.fetch_one = AsyncMock(return_value=None)
    db.fetch_all = AsyncMock(return_value=[])
    db.fetch_value = AsyncMock(return_value=False)
    return db


@pytest.fixture
def repo(mock_db: MagicMock) -> PostgresRbacRepository:
    """Return a repository over the mock database."""
    return PostgresRbacRepository(mock_db)


class TestPostgresRbacRepository:
    """Tests for PostgresRbacRepository."""

    def test_satisfies_protocol(self, repo: PostgresRbacRepository) -> None:
        """Test the repository implements RbacRepository."""
        assert isinstance(repo, RbacRepository)

    async def test_get_membership(self, repo: PostgresRbacRepository, mock_db: MagicMock) -> None:
        """Test the aggregated row becomes a membership."""
        user_id, project_id = uuid4(), uuid4()
        mock_db.fetch_one.return_value = {
            "user_id": user_id,
            "project_id": project_id,
            "role": "LEAD",
            "permissions": ["create_task", "view_task"],
        }

        membership = await repo.get_membership(user_id, project_id)

        assert membership is not None
        assert membership.role is RoleName.LEAD
        assert membership.permissions == frozenset({"create_task", "view_task"})

    async def test_get_membership_missing(self, repo: PostgresRbacRepository) -> None:
        """Test a non-member maps to None."""
        assert await repo.get_membership(uuid4(), uuid4()) is None

    async def test_get_task_includes_project(
        self, repo: PostgresRbacRepository, mock_db: MagicMock
    ) -> None:
        """Test the task carries its module's project."""
        project_id = uuid4()
        mock_db.fetch_one.return_value = {
            "id": uuid4(),
            "module_id": uuid4(),
            "project_id": project_id,
            "assigned_to_id": None,
            "created_by_id": None,
        }

        task = await repo.get_task(uuid4())

        assert task is not None and task.project_id == project_id
        assert "JOIN modules" in mock_db.fetch_one.call_args.args[0]

    async def test_is_org_admin(self, repo: PostgresRbacRepository, mock_db: MagicMock) -> None:
        """Test the ADMIN role name is bound as a parameter."""
        mock_db.fetch_value.return_value = True

        assert await repo.is_org_admin(uuid4(), uuid4()) is True
        assert mock_db.fetch_value.call_args.args[-1] == "ADMIN"

        mock_db.fetch_value.return_value = None
        assert await repo.is_org_admin(uuid4(), uuid4()) is False

    async def test_list_super_admins(
        self, repo: PostgresRbacRepository, mock_db: MagicMock
    ) -> None:
        """Test rows map to scopes."""
        admin_id = uuid4()
        mock_db.fetch_all.return_value = [
            {"id": admin_id, "organization_id": None, "is_active": True, "email": "a@x.io"}
        ]

        admins = await repo.list_super_admins()

        assert [a.id for a in admins] == [admin_id]

    async def test_driver_error_is_wrapped(
        self, repo: PostgresRbacRepository, mock_db: MagicMock
    ) -> None:
        """Test driver errors become PersistenceError."""
        mock_db.fetch_one.side_effect = asyncpg.PostgresError("boom")

        with pytest.raises(PersistenceError):
            await repo.get_project(uuid4())


@pytest.fixture
def seed_conn() -> MagicMock:
    """Return the connection handed out by a mock transaction."""
    conn = MagicMock()
    conn.execute = AsyncMock()
    return conn


@pytest.fixture
def seed_db(seed_conn: MagicMock) -> MagicMock:
    """Return a mock AppDatabase whose transaction yields seed_conn."""
    db = MagicMock()

    @asynccontextmanager
    async def mock_transaction():
        yield seed_conn

    db.transaction = mock_transaction
    return db


def _queries(conn: MagicMock) -> list[str]:
    return [call.args[0] for call in conn.execute.call_args_list]


class TestSeedRbac:
    """Tests for seed_rbac."""

    async def test_seeds_catalog_in_one_transaction(
        self, seed_db: MagicMock, seed_conn: MagicMock
    ) -> None:
        """Test roles, permissions and the mapping are written."""
        await seed_rbac(seed_db)

        queries = _queries(seed_conn)
        assert sum("INSERT INTO roles" in q for q in queries) == len(RoleName)
        assert sum("INSERT INTO permissions" in q for q in queries) == len(PERMISSION_DEFINITIONS)
        assert sum("INSERT INTO role_permissions" in q for q in queries) == len(RoleName)

        admin_call = next(
            call
            for call in seed_conn.execute.call_args_list
            if "INSERT INTO role_permissions" in call.args[0] and call.args[1] == "ADMIN"
        )
        assert len(admin_call.args[2]) == len(PERMISSION_DEFINITIONS)

    async def test_default_keeps_existing_rows(
        self, seed_db: MagicMock, seed_conn: MagicMock
    ) -> None:
        """Test a normal start only fills gaps and never deletes mappings."""
        await seed_rbac(seed_db)

        queries = _queries(seed_conn)
        assert not any("DELETE" in q for q in queries)
        assert not any("DO UPDATE" in q for q in queries)
        mapping_queries = [q for q in queries if "INSERT INTO role_permissions" in q]
        assert all("NOT EXISTS" in q for q in mapping_queries)

    async def test_reset_rebuilds_mappings(
        self, seed_db: MagicMock, seed_conn: MagicMock
    ) -> None:
        """Test reset overwrites catalog rows and clears the mapping table first."""
        await seed_rbac(seed_db, reset=True)

        queries = _queries(seed_conn)
        delete_at = queries.index("DELETE FROM role_permissions")
        first_mapping = next(
            i for i, q in enumerate(queries) if "INSERT INTO role_permissions" in q
        )
        assert delete_at < first_mapping
        assert all("DO UPDATE" in q for q in queries if "INSERT INTO roles" in q)
        assert all("DO UPDATE" in q for q in queries if "INSERT INTO permissions" in q)
