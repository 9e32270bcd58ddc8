"""Audit trail API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from travelbooks.core.database import get_db
from travelbooks.repositories.audit_log_repository import AuditLogRepository
from travelbooks.schemas.audit_log import AuditLogResponse

router = APIRouter()


@router.get("/{resource_type}/{resource_id}", response_model=list[AuditLogResponse])
async def get_resource_audit_trail(
    resource_type: str,
    resource_id: UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> list[AuditLogResponse]:
    """Status changes, clawbacks and refunds recorded against one ledger entity."""
    repo = AuditLogRepository(db)
    logs = repo.get_by_resource(resource_type, resource_id, skip=skip, limit=limit)
    return [AuditLogResponse.model_validate(log) for log in logs]
