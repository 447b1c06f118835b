from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import attrs

from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind


@attrs.frozen
class AuditLog:
    """Append-only record of one state transition."""

    id: UUID
    action: AuditAction
    resource_kind: ResourceKind
    resource_id: UUID
    created_at: datetime
    actor_id: Optional[UUID] = None
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None
    metadata: dict[str, Any] = attrs.field(factory=dict)
    suspicious: bool = False
