"""Activity (audit) log types and sink protocol."""

from enum import Enum
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ActivityAction(str, Enum):
    """Audited actions."""

    USER_CREATED = "USER_CREATED"
    USER_REGISTERED = "USER_REGISTERED"
    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    USER_UPDATED = "USER_UPDATED"


class ActivityEntry(BaseModel):
    """Request to record an activity log entry."""

    model_config = ConfigDict(frozen=True)

    action: ActivityAction
    user_id: UUID | None = None
    organization_id: UUID | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    details: dict[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@runtime_checkable
class ActivitySink(Protocol):
    """Protocol for the activity log.

    Recording is best effort: implementations log their own failures and
    must not raise into the caller's control flow.
    """

    async def log_activity(self, entry: ActivityEntry) -> None:
        """Record an activity entry."""
        ...
