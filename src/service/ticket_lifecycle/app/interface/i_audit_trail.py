from abc import ABC, abstractmethod
from typing import Iterable, Optional

from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry
from src.service.ticket_lifecycle.domain.entity.audit_log_entity import AuditLog


class IAuditTrail(ABC):
    """
    Append-only audit sink

    ``record`` runs after the business transaction committed, in its own
    session. It never raises: a failed write is logged as a warning.
    """

    @abstractmethod
    async def record(self, entry: AuditEntry) -> Optional[AuditLog]:
        pass

    async def record_all(self, entries: Iterable[AuditEntry]) -> None:
        for entry in entries:
            await self.record(entry)
