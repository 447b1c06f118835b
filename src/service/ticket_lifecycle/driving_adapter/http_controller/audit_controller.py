from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.query.audit_query_use_case import (
    ListAuditLogsUseCase,
    ResourceHistoryUseCase,
)
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.role_auth import (
    require_organizer_or_admin,
)
from src.service.ticket_lifecycle.driving_adapter.http_controller.schema.audit_schema import (
    AuditLogListResponse,
    AuditLogResponse,
)


router = APIRouter()


@router.get('')
@Logger.io
async def list_audit_logs(
    actor_id: Optional[UUID] = None,
    action: Optional[AuditAction] = None,
    resource_kind: Optional[ResourceKind] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    suspicious: Optional[bool] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    current_user: CurrentUser = Depends(require_organizer_or_admin),
    use_case: ListAuditLogsUseCase = Depends(ListAuditLogsUseCase.depends),
) -> AuditLogListResponse:
    result = await use_case.execute(
        actor_id=actor_id,
        action=action,
        resource_kind=resource_kind,
        since=since,
        until=until,
        suspicious=suspicious,
        page=page,
        limit=limit,
    )
    return AuditLogListResponse.from_page(result)


@router.get('/{resource_kind}/{resource_id}')
@Logger.io
async def resource_history(
    resource_kind: ResourceKind,
    resource_id: UUID,
    current_user: CurrentUser = Depends(require_organizer_or_admin),
    use_case: ResourceHistoryUseCase = Depends(ResourceHistoryUseCase.depends),
) -> List[AuditLogResponse]:
    logs = await use_case.execute(resource_kind=resource_kind, resource_id=resource_id)
    return [AuditLogResponse.from_entity(log) for log in logs]
