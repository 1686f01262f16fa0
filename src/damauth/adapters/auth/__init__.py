"""Auth adapters."""

from damauth.adapters.auth.memory import InMemoryCredentialStore
from damauth.adapters.auth.postgres import PostgresCredentialStore

__all__ = ["InMemoryCredentialStore", "PostgresCredentialStore"]
