from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus


class IOrderRepo(ABC):
    @abstractmethod
    async def create(self, *, order: Order) -> Order:
        pass

    @abstractmethod
    async def get_by_id(self, *, order_id: UUID, for_update: bool = False) -> Optional[Order]:
        """
        Args:
            for_update: take the row lock every order mutation requires
        """
        pass

    @abstractmethod
    async def update(self, *, order: Order) -> Order:
        pass

    @abstractmethod
    async def list_by_user(
        self, *, user_id: UUID, status: Optional[OrderStatus], page: int, limit: int
    ) -> tuple[List[Order], int]:
        """Newest first; returns the page and the total count."""
        pass
