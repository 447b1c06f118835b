from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.entity.cart_entity import Cart


class ICartRepo(ABC):
    @abstractmethod
    async def get_active_for_user(
        self, *, user_id: UUID, for_update: bool = False
    ) -> Optional[Cart]:
        pass

    @abstractmethod
    async def get_by_id(self, *, cart_id: UUID) -> Optional[Cart]:
        pass

    @abstractmethod
    async def save(self, *, cart: Cart) -> Cart:
        """Insert or update the cart and replace its items."""
        pass
