"""PostgreSQL activity log sink."""

import json

import structlog

from damauth.adapters.db.app_db import AppDatabase
from damauth.core.audit import ActivityEntry

logger = structlog.get_logger()


class ActivityLogRepository:
    """Writes activity entries to the activity_logs table.

    Recording is best effort: a failed insert is logged and dropped so the
    audited operation still completes.
    """

    def __init__(self, db: AppDatabase) -> None:
        """Initialize the repository.

        Args:
            db: Application database instance.
        """
        self._db = db

    async def log_activity(self, entry: ActivityEntry) -> None:
        """Record an activity entry."""
        try:
            await self._db.execute(
                """
                INSERT INTO activity_logs (
                    action, user_id, organization_id, entity_type, entity_id,
                    details, ip_address, user_agent
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                """,
                entry.action.value,
                entry.user_id,
                entry.organization_id,
                entry.entity_type,
                entry.entity_id,
                json.dumps(entry.details) if entry.details is not None else None,
                entry.ip_address,
                entry.user_agent,
            )
        except Exception as e:
            # Log but don't fail the audited operation
            logger.error(
                "activity_log_write_failed",
                action=entry.action.value,
                user_id=str(entry.user_id) if entry.user_id else None,
                error=str(e),
            )
            return

        logger.debug("activity_logged", action=entry.action.value)
