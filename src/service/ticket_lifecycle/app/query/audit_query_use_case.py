from datetime import datetime
from typing import List, Optional, Self
from uuid import UUID

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.exception.exceptions import ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.page import Page
from src.service.ticket_lifecycle.app.interface.i_audit_log_repo import IAuditLogRepo
from src.service.ticket_lifecycle.domain.entity.audit_log_entity import AuditLog
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind


MAX_PAGE_SIZE = 200


class ListAuditLogsUseCase:
    def __init__(self, *, audit_log_repo: IAuditLogRepo) -> None:
        self.audit_log_repo = audit_log_repo

    @classmethod
    @inject
    def depends(
        cls,
        audit_log_repo: IAuditLogRepo = Depends(Provide[Container.audit_log_repo]),
    ) -> Self:
        return cls(audit_log_repo=audit_log_repo)

    @Logger.io
    async def execute(
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
    ) -> Page[AuditLog]:
        if since is not None and until is not None and since > until:
            raise ValidationError('since must not be after until', field='since')
        limit = min(limit, MAX_PAGE_SIZE)
        logs, total = await self.audit_log_repo.list_logs(
            actor_id=actor_id,
            action=action,
            resource_kind=resource_kind,
            since=since,
            until=until,
            suspicious=suspicious,
            page=page,
            limit=limit,
        )
        return Page(items=logs, total=total, page=page, limit=limit)


class ResourceHistoryUseCase:
    def __init__(self, *, audit_log_repo: IAuditLogRepo) -> None:
        self.audit_log_repo = audit_log_repo

    @classmethod
    @inject
    def depends(
        cls,
        audit_log_repo: IAuditLogRepo = Depends(Provide[Container.audit_log_repo]),
    ) -> Self:
        return cls(audit_log_repo=audit_log_repo)

    @Logger.io
    async def execute(self, *, resource_kind: ResourceKind, resource_id: UUID) -> List[AuditLog]:
        return await self.audit_log_repo.list_for_resource(
            resource_kind=resource_kind, resource_id=resource_id
        )
