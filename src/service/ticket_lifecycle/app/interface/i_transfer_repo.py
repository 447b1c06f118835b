from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.entity.transfer_entity import TicketTransfer


TransferDirection = Literal['incoming', 'outgoing', 'all']


class ITransferRepo(ABC):
    @abstractmethod
    async def create(self, *, transfer: TicketTransfer) -> TicketTransfer:
        pass

    @abstractmethod
    async def get_by_id(
        self, *, transfer_id: UUID, for_update: bool = False, skip_locked: bool = False
    ) -> Optional[TicketTransfer]:
        pass

    @abstractmethod
    async def code_exists(self, *, transfer_code: str) -> bool:
        pass

    @abstractmethod
    async def update(self, *, transfer: TicketTransfer) -> TicketTransfer:
        pass

    @abstractmethod
    async def find_pending_for_ticket(self, *, ticket_id: UUID) -> Optional[TicketTransfer]:
        pass

    @abstractmethod
    async def list_by_ticket(self, *, ticket_id: UUID) -> List[TicketTransfer]:
        pass

    @abstractmethod
    async def list_pending_for_user(
        self, *, user_id: UUID, direction: TransferDirection
    ) -> List[TicketTransfer]:
        pass

    @abstractmethod
    async def find_expired_pending(self, *, now: datetime, limit: int) -> List[TicketTransfer]:
        pass
