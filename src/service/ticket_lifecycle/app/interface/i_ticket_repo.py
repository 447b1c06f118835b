"""
Ticket Repository Interface

``mark_used_if_confirmed`` is the only authority for admission: it is a
conditional UPDATE and exactly one concurrent caller sees it succeed.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.enum.ticket_format import CredentialFormat


class ITicketRepo(ABC):
    @abstractmethod
    async def create_many(self, *, tickets: List[Ticket]) -> List[Ticket]:
        pass

    @abstractmethod
    async def get_by_id(self, *, ticket_id: UUID, for_update: bool = False) -> Optional[Ticket]:
        pass

    @abstractmethod
    async def list_by_order(self, *, order_id: UUID, for_update: bool = False) -> List[Ticket]:
        pass

    @abstractmethod
    async def list_by_order_line(self, *, order_id: UUID, line_index: int) -> List[Ticket]:
        pass

    @abstractmethod
    async def list_by_user(self, *, user_id: UUID) -> List[Ticket]:
        pass

    @abstractmethod
    async def find_by_credential(
        self, *, credential_format: CredentialFormat, payload: str
    ) -> Optional[Ticket]:
        pass

    @abstractmethod
    async def ticket_number_exists(self, *, ticket_number: str) -> bool:
        pass

    @abstractmethod
    async def update(self, *, ticket: Ticket) -> Ticket:
        pass

    @abstractmethod
    async def mark_used_if_confirmed(
        self, *, ticket_id: UUID, used_at: datetime, validation_method: str
    ) -> bool:
        """
        ``UPDATE tickets SET status='used' ... WHERE id = :id AND status = 'confirmed'``

        Returns:
            True when this call performed the transition
        """
        pass
