from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.entity.reservation_entity import Reservation


class IReservationRepo(ABC):
    @abstractmethod
    async def create(self, *, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    async def get_by_id(self, *, reservation_id: UUID) -> Optional[Reservation]:
        pass

    @abstractmethod
    async def lock_many(
        self, *, reservation_ids: List[UUID], skip_locked: bool = False
    ) -> List[Reservation]:
        """FOR UPDATE (optionally SKIP LOCKED) in id order."""
        pass

    @abstractmethod
    async def update(self, *, reservation: Reservation) -> Reservation:
        pass

    @abstractmethod
    async def find_expired_held(self, *, now: datetime, limit: int) -> List[Reservation]:
        """Unlocked candidate scan for the expiry sweep, oldest first."""
        pass
