"""
Inventory Repository Interface

Counter storage behind the inventory ledger. Every method runs inside the
caller's transaction; none of them commits.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.entity.event_entity import Seat
from src.service.ticket_lifecycle.domain.enum.inventory_scope import InventoryScope
from src.service.ticket_lifecycle.domain.enum.seat_status import SeatStatus


class IInventoryRepo(ABC):
    @abstractmethod
    async def decrement(self, *, scope: InventoryScope, row_id: UUID, quantity: int) -> bool:
        """
        Conditional decrement: ``UPDATE ... SET available = available - :qty
        WHERE id = :id AND available >= :qty``

        Returns:
            False when fewer than ``quantity`` units remain (nothing changed)
        """
        pass

    @abstractmethod
    async def increment(self, *, scope: InventoryScope, row_id: UUID, quantity: int) -> int:
        """
        Give units back, never past the row's total

        Returns:
            The available count after the update
        """
        pass

    @abstractmethod
    async def get_available(self, *, scope: InventoryScope, row_id: UUID) -> Optional[int]:
        pass

    @abstractmethod
    async def lock_seats(self, *, seat_ids: List[UUID]) -> List[Seat]:
        """SELECT ... FOR UPDATE on the seat rows, in id order."""
        pass

    @abstractmethod
    async def update_seat_status(
        self,
        *,
        seat_ids: List[UUID],
        from_status: SeatStatus,
        to_status: SeatStatus,
        reservation_id: Optional[UUID],
    ) -> int:
        """Conditional status change; returns the number of rows moved."""
        pass
