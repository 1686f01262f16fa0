"""RBAC adapters."""

from damauth.adapters.rbac.postgres import PostgresRbacRepository, seed_rbac

__all__ = [
    "PostgresRbacRepository",
    "seed_rbac",
]
