from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.entity.refund_entity import TicketRefund
from src.service.ticket_lifecycle.domain.enum.refund_status import RefundStatus


class IRefundRepo(ABC):
    @abstractmethod
    async def create(self, *, refund: TicketRefund) -> TicketRefund:
        pass

    @abstractmethod
    async def get_by_id(
        self, *, refund_id: UUID, for_update: bool = False
    ) -> Optional[TicketRefund]:
        pass

    @abstractmethod
    async def update(self, *, refund: TicketRefund) -> TicketRefund:
        pass

    @abstractmethod
    async def find_pending_for_ticket(self, *, ticket_id: UUID) -> Optional[TicketRefund]:
        pass

    @abstractmethod
    async def list_by_user(
        self, *, user_id: UUID, page: int, limit: int
    ) -> tuple[List[TicketRefund], int]:
        pass

    @abstractmethod
    async def list_pending(self, *, organizer_id: Optional[UUID] = None) -> List[TicketRefund]:
        """Oldest first; restricted to one organizer's events when given."""
        pass

    @abstractmethod
    async def stats(
        self, *, organizer_id: Optional[UUID] = None
    ) -> tuple[dict[RefundStatus, int], Decimal]:
        """Counts per status and the approved refund total."""
        pass
