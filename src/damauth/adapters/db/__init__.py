"""Application database adapters.

Contents:
- app_db: asyncpg pool handle shared by the PostgreSQL adapters
- schema: DDL for users, credentials, the RBAC model and activity logs
"""

from .app_db import AppDatabase, affected_rows, database_errors
from .schema import SCHEMA_SQL

__all__ = ["SCHEMA_SQL", "AppDatabase", "affected_rows", "database_errors"]
