from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_audit_log_repo import IAuditLogRepo
from src.service.ticket_lifecycle.domain.entity.audit_log_entity import AuditLog
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.driven_adapter.model.audit_log_model import AuditLogModel
from src.service.ticket_lifecycle.driven_adapter.repo.session_bound_repo import SessionBoundRepo


class AuditLogRepoImpl(SessionBoundRepo, IAuditLogRepo):
    """
    Append-only audit store.

    Runs in standalone mode so an audit write neither joins nor outlives the
    business transaction it describes.
    """

    @staticmethod
    def _to_entity(model: AuditLogModel) -> AuditLog:
        return AuditLog(
            id=model.id,
            action=AuditAction(model.action),
            resource_kind=ResourceKind(model.resource_kind),
            resource_id=model.resource_id,
            created_at=model.created_at,
            actor_id=model.actor_id,
            before=model.before,
            after=model.after,
            metadata=dict(model.log_metadata or {}),
            suspicious=model.suspicious,
        )

    @Logger.io
    async def append(self, *, log: AuditLog) -> AuditLog:
        async with self._get_session() as session:
            session.add(
                AuditLogModel(
                    id=log.id,
                    actor_id=log.actor_id,
                    action=log.action.value,
                    resource_kind=log.resource_kind.value,
                    resource_id=log.resource_id,
                    before=log.before,
                    after=log.after,
                    log_metadata=dict(log.metadata),
                    suspicious=log.suspicious,
                    created_at=log.created_at,
                )
            )
            await session.commit()
            return log

    @Logger.io
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
        conditions = []
        if actor_id is not None:
            conditions.append(AuditLogModel.actor_id == actor_id)
        if action is not None:
            conditions.append(AuditLogModel.action == action.value)
        if resource_kind is not None:
            conditions.append(AuditLogModel.resource_kind == resource_kind.value)
        if since is not None:
            conditions.append(AuditLogModel.created_at >= since)
        if until is not None:
            conditions.append(AuditLogModel.created_at <= until)
        if suspicious is not None:
            conditions.append(AuditLogModel.suspicious == suspicious)

        async with self._get_session() as session:
            count_stmt = select(func.count()).select_from(AuditLogModel).where(*conditions)
            total = (await session.execute(count_stmt)).scalar_one()
            result = await session.execute(
                select(AuditLogModel)
                .where(*conditions)
                .order_by(AuditLogModel.created_at.desc(), AuditLogModel.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            return [self._to_entity(m) for m in result.scalars().all()], total

    @Logger.io
    async def list_for_resource(
        self, *, resource_kind: ResourceKind, resource_id: UUID
    ) -> List[AuditLog]:
        async with self._get_session() as session:
            result = await session.execute(
                select(AuditLogModel)
                .where(
                    AuditLogModel.resource_kind == resource_kind.value,
                    AuditLogModel.resource_id == resource_id,
                )
                .order_by(AuditLogModel.created_at, AuditLogModel.id)
            )
            return [self._to_entity(m) for m in result.scalars().all()]
