from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel

from src.service.ticket_lifecycle.app.dto.page import Page
from src.service.ticket_lifecycle.domain.entity.audit_log_entity import AuditLog


class AuditLogResponse(BaseModel):
    id: UUID
    action: str
    resource_kind: str
    resource_id: UUID
    actor_id: Optional[UUID] = None
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    metadata: dict[str, Any] = {}
    suspicious: bool = False
    created_at: datetime

    @classmethod
    def from_entity(cls, log: AuditLog) -> 'AuditLogResponse':
        return cls(
            id=log.id,
            action=log.action.value,
            resource_kind=log.resource_kind.value,
            resource_id=log.resource_id,
            actor_id=log.actor_id,
            before=log.before,
            after=log.after,
            metadata=log.metadata,
            suspicious=log.suspicious,
            created_at=log.created_at,
        )


class AuditLogListResponse(BaseModel):
    items: List[AuditLogResponse]
    total: int
    page: int
    limit: int

    @classmethod
    def from_page(cls, page: Page[AuditLog]) -> 'AuditLogListResponse':
        return cls(
            items=[AuditLogResponse.from_entity(log) for log in page.items],
            total=page.total,
            page=page.page,
            limit=page.limit,
        )
