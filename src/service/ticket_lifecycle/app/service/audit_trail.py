from typing import Optional

from uuid_utils.compat import uuid7

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry
from src.service.ticket_lifecycle.app.interface.i_audit_log_repo import IAuditLogRepo
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.domain.entity.audit_log_entity import AuditLog


class AuditTrail(IAuditTrail):
    def __init__(self, *, audit_log_repo: IAuditLogRepo, clock: IClock) -> None:
        self.audit_log_repo = audit_log_repo
        self.clock = clock

    async def record(self, entry: AuditEntry) -> Optional[AuditLog]:
        log = AuditLog(
            id=uuid7(),
            action=entry.action,
            resource_kind=entry.resource_kind,
            resource_id=entry.resource_id,
            actor_id=entry.actor_id,
            before=entry.before,
            after=entry.after,
            metadata=dict(entry.metadata),
            suspicious=entry.suspicious,
            created_at=self.clock.now(),
        )
        try:
            return await self.audit_log_repo.append(log=log)
        except Exception as e:
            # The business transaction already committed; losing the entry is not fatal
            Logger.base.warning(
                f'📝 [AUDIT] Failed to record {entry.action} for '
                f'{entry.resource_kind}:{entry.resource_id}: {type(e).__name__}: {e}'
            )
            return None
