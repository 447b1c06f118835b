from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment


class IPaymentRepo(ABC):
    @abstractmethod
    async def create(self, *, payment: Payment) -> Payment:
        pass

    @abstractmethod
    async def get_by_id(self, *, payment_id: UUID, for_update: bool = False) -> Optional[Payment]:
        pass

    @abstractmethod
    async def get_by_reference(self, *, reference_number: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def reference_exists(self, *, reference_number: str) -> bool:
        pass

    @abstractmethod
    async def update(self, *, payment: Payment) -> Payment:
        pass

    @abstractmethod
    async def list_by_order(self, *, order_id: UUID, for_update: bool = False) -> List[Payment]:
        pass

    @abstractmethod
    async def find_pending_for_checkout(self, *, checkout_id: UUID) -> Optional[Payment]:
        pass
