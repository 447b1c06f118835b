from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.entity.checkout_entity import Checkout


class ICheckoutRepo(ABC):
    @abstractmethod
    async def create(self, *, checkout: Checkout) -> Checkout:
        pass

    @abstractmethod
    async def get_by_id(self, *, checkout_id: UUID, for_update: bool = False) -> Optional[Checkout]:
        pass

    @abstractmethod
    async def update(self, *, checkout: Checkout) -> Checkout:
        pass

    @abstractmethod
    async def find_expired_pending(self, *, now: datetime, limit: int) -> List[Checkout]:
        pass
