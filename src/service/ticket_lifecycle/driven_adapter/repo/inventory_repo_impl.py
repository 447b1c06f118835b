"""
Inventory Repository Implementation

Counters are only ever changed through conditional UPDATE statements, so a
decrement can never drive ``available`` below zero and an increment can never
push it past the row's total, whatever the interleaving.
"""

from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import case, select, update

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_inventory_repo import IInventoryRepo
from src.service.ticket_lifecycle.domain.entity.event_entity import Seat
from src.service.ticket_lifecycle.domain.enum.inventory_scope import InventoryScope
from src.service.ticket_lifecycle.domain.enum.seat_status import SeatStatus
from src.service.ticket_lifecycle.driven_adapter.model.event_model import (
    EventModel,
    EventSessionModel,
    PricingTierModel,
    SeatModel,
)
from src.service.ticket_lifecycle.driven_adapter.repo.session_bound_repo import SessionBoundRepo


# scope -> (model, available column, total column)
_COUNTERS: dict[InventoryScope, tuple[Any, Any, Any]] = {
    InventoryScope.EVENT: (
        EventModel,
        EventModel.available_tickets,
        EventModel.total_capacity,
    ),
    InventoryScope.TIER: (
        PricingTierModel,
        PricingTierModel.available_tickets,
        PricingTierModel.total_tickets,
    ),
    InventoryScope.SESSION: (
        EventSessionModel,
        EventSessionModel.available_seats,
        EventSessionModel.capacity,
    ),
}


class InventoryRepoImpl(SessionBoundRepo, IInventoryRepo):
    @Logger.io
    async def decrement(self, *, scope: InventoryScope, row_id: UUID, quantity: int) -> bool:
        model, available, _ = _COUNTERS[scope]
        async with self._get_session() as session:
            result = await session.execute(
                update(model)
                .where(model.id == row_id, available >= quantity)
                .values({available.key: available - quantity})
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    @Logger.io
    async def increment(self, *, scope: InventoryScope, row_id: UUID, quantity: int) -> int:
        model, available, total = _COUNTERS[scope]
        async with self._get_session() as session:
            await session.execute(
                update(model)
                .where(model.id == row_id)
                .values(
                    {
                        available.key: case(
                            (available + quantity > total, total),
                            else_=available + quantity,
                        )
                    }
                )
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(select(available).where(model.id == row_id))
            return result.scalar_one()

    @Logger.io
    async def get_available(self, *, scope: InventoryScope, row_id: UUID) -> Optional[int]:
        model, available, _ = _COUNTERS[scope]
        async with self._get_session() as session:
            result = await session.execute(select(available).where(model.id == row_id))
            return result.scalar_one_or_none()

    @Logger.io
    async def lock_seats(self, *, seat_ids: List[UUID]) -> List[Seat]:
        if not seat_ids:
            return []
        async with self._get_session() as session:
            result = await session.execute(
                select(SeatModel)
                .where(SeatModel.id.in_(seat_ids))
                .order_by(SeatModel.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            return [
                Seat(
                    id=m.id,
                    event_id=m.event_id,
                    tier_id=m.tier_id,
                    section=m.section,
                    row=m.row,
                    number=m.number,
                    status=SeatStatus(m.status),
                    reservation_id=m.reservation_id,
                )
                for m in result.scalars().all()
            ]

    @Logger.io
    async def update_seat_status(
        self,
        *,
        seat_ids: List[UUID],
        from_status: SeatStatus,
        to_status: SeatStatus,
        reservation_id: Optional[UUID],
    ) -> int:
        if not seat_ids:
            return 0
        async with self._get_session() as session:
            result = await session.execute(
                update(SeatModel)
                .where(SeatModel.id.in_(seat_ids), SeatModel.status == from_status.value)
                .values(status=to_status.value, reservation_id=reservation_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount
