"""Activity log adapters."""

from damauth.adapters.audit.repository import ActivityLogRepository

__all__ = ["ActivityLogRepository"]
