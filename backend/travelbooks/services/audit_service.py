"""Audit service for recording state changes to ledger entities."""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from travelbooks.repositories.audit_log_repository import AuditLogRepository


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return str(value)


class AuditService:
    """Service for recording audit trail entries.

    Entries are flushed inside the caller's transaction, so a rolled back
    operation leaves no audit trail behind.
    """

    def __init__(self, db: Session):
        self.repo = AuditLogRepository(db)

    def log_create(
        self,
        resource_type: str,
        resource_id: UUID,
        actor_type: str = "system",
        actor_id: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Log a resource creation event."""
        self.repo.create(
            resource_type=resource_type,
            resource_id=resource_id,
            action="created",
            changes={k: _jsonable(v) for k, v in (data or {}).items()},
            actor_type=actor_type,
            actor_id=actor_id,
        )

    def log_status_change(
        self,
        resource_type: str,
        resource_id: UUID,
        old_status: str,
        new_status: str,
        actor_type: str = "system",
        actor_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Log a status change event."""
        if old_status == new_status:
            return
        self.repo.create(
            resource_type=resource_type,
            resource_id=resource_id,
            action="status_changed",
            changes={"status": {"old": old_status, "new": new_status}},
            actor_type=actor_type,
            actor_id=actor_id,
            metadata={k: _jsonable(v) for k, v in (metadata or {}).items()} or None,
        )

    def log_action(
        self,
        resource_type: str,
        resource_id: UUID,
        action: str,
        changes: dict[str, Any],
        actor_type: str = "system",
        actor_id: str | None = None,
    ) -> None:
        """Log a domain action such as a refund or clawback."""
        self.repo.create(
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            changes={k: _jsonable(v) for k, v in changes.items()},
            actor_type=actor_type,
            actor_id=actor_id,
        )
