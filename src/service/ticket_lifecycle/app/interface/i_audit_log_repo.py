from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.entity.audit_log_entity import AuditLog
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind


class IAuditLogRepo(ABC):
    @abstractmethod
    async def append(self, *, log: AuditLog) -> AuditLog:
        """Insert and commit in the repo's own session; there is no update or delete."""
        pass

    @abstractmethod
    async def list_logs(
        self,
        *,
        actor_id: Optional[UUID] = None,
        action: Optional[AuditAction] = None,
        resource_kind: Optional[ResourceKind] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        suspicious: Optional[bool] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[List[AuditLog], int]:
        pass

    @abstractmethod
    async def list_for_resource(
        self, *, resource_kind: ResourceKind, resource_id: UUID
    ) -> List[AuditLog]:
        """Oldest first."""
        pass
