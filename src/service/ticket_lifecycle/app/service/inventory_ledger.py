"""
Inventory Ledger

Authoritative capacity counters. Each movement is a conditional UPDATE inside
the caller's transaction, so a tier row never goes below zero or above its
total no matter how many requests race on it.

Scopes a line draws from:
- explicit seats: the seats themselves, their tier and the event pool
- a session: the session counter only
- a tier: the tier counter and the event pool
- neither: the event pool
"""

from collections import Counter
from typing import Iterable, Optional, Sequence
from uuid import UUID

from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.exception.exceptions import (
    ConflictingStateError,
    InsufficientError,
    NotFoundError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.inventory_snapshot import (
    CounterSnapshot,
    InventorySnapshot,
)
from src.service.ticket_lifecycle.domain.entity.event_entity import Seat
from src.service.ticket_lifecycle.domain.enum.inventory_scope import InventoryScope
from src.service.ticket_lifecycle.domain.enum.seat_status import SeatStatus


class InventoryLedger:
    @Logger.io
    async def decrement(
        self,
        uow: AbstractUnitOfWork,
        *,
        event_id: UUID,
        quantity: int,
        tier_id: Optional[UUID] = None,
        session_id: Optional[UUID] = None,
        seat_ids: Sequence[UUID] = (),
        reservation_id: Optional[UUID] = None,
    ) -> list[Seat]:
        """
        Take ``quantity`` units out of every counter the line draws from

        Raises:
            InsufficientError: a counter has fewer than ``quantity`` units left;
                the caller's transaction must be rolled back
        """
        seats: list[Seat] = []
        if seat_ids:
            seats = await self._hold_seats(
                uow, event_id=event_id, seat_ids=seat_ids, reservation_id=reservation_id
            )
            for seat_tier_id, count in sorted(Counter(s.tier_id for s in seats).items()):
                await self._take(
                    uow, scope=InventoryScope.TIER, row_id=seat_tier_id, quantity=count
                )
        elif session_id is not None:
            await self._take(
                uow, scope=InventoryScope.SESSION, row_id=session_id, quantity=quantity
            )
            return seats
        elif tier_id is not None:
            await self._take(uow, scope=InventoryScope.TIER, row_id=tier_id, quantity=quantity)

        await self._take(uow, scope=InventoryScope.EVENT, row_id=event_id, quantity=quantity)
        return seats

    @Logger.io
    async def increment(
        self,
        uow: AbstractUnitOfWork,
        *,
        event_id: UUID,
        quantity: int,
        tier_id: Optional[UUID] = None,
        session_id: Optional[UUID] = None,
        seat_ids: Sequence[UUID] = (),
        seat_status: SeatStatus = SeatStatus.HELD,
    ) -> None:
        """Give units back to every counter the line drew from; counters cap at their total."""
        if quantity <= 0:
            return
        if seat_ids:
            seats = await uow.inventory_repo.lock_seats(seat_ids=list(seat_ids))
            await uow.inventory_repo.update_seat_status(
                seat_ids=[s.id for s in seats],
                from_status=seat_status,
                to_status=SeatStatus.AVAILABLE,
                reservation_id=None,
            )
            for seat_tier_id, count in sorted(Counter(s.tier_id for s in seats).items()):
                await uow.inventory_repo.increment(
                    scope=InventoryScope.TIER, row_id=seat_tier_id, quantity=count
                )
        elif session_id is not None:
            await uow.inventory_repo.increment(
                scope=InventoryScope.SESSION, row_id=session_id, quantity=quantity
            )
            return
        elif tier_id is not None:
            await uow.inventory_repo.increment(
                scope=InventoryScope.TIER, row_id=tier_id, quantity=quantity
            )

        await uow.inventory_repo.increment(
            scope=InventoryScope.EVENT, row_id=event_id, quantity=quantity
        )

    async def mark_seats_sold(self, uow: AbstractUnitOfWork, *, seat_ids: Iterable[UUID]) -> None:
        ids = list(seat_ids)
        if ids:
            await uow.inventory_repo.update_seat_status(
                seat_ids=ids,
                from_status=SeatStatus.HELD,
                to_status=SeatStatus.SOLD,
                reservation_id=None,
            )

    @Logger.io
    async def snapshot(self, uow: AbstractUnitOfWork, *, event_id: UUID) -> InventorySnapshot:
        event = await uow.event_repo.get_by_id(event_id=event_id)
        if event is None or event.deleted_at is not None:
            raise NotFoundError('Event not found')
        tiers = await uow.event_repo.list_tiers(event_id=event_id)
        sessions = await uow.event_repo.list_sessions(event_id=event_id)
        return InventorySnapshot(
            event_id=event.id,
            total_capacity=event.total_capacity,
            available_tickets=event.available_tickets,
            tiers=[
                CounterSnapshot(
                    id=t.id, name=t.name, total=t.total_tickets, available=t.available_tickets
                )
                for t in tiers
            ],
            sessions=[
                CounterSnapshot(
                    id=s.id, name=s.name, total=s.capacity, available=s.available_seats
                )
                for s in sessions
            ],
        )

    async def _take(
        self, uow: AbstractUnitOfWork, *, scope: InventoryScope, row_id: UUID, quantity: int
    ) -> None:
        if not await uow.inventory_repo.decrement(scope=scope, row_id=row_id, quantity=quantity):
            available = await uow.inventory_repo.get_available(scope=scope, row_id=row_id)
            if available is None:
                raise NotFoundError(f'{scope.value.capitalize()} not found')
            raise InsufficientError(
                f'Only {available} tickets left, {quantity} requested'
                if available
                else 'Sold out'
            )

    async def _hold_seats(
        self,
        uow: AbstractUnitOfWork,
        *,
        event_id: UUID,
        seat_ids: Sequence[UUID],
        reservation_id: Optional[UUID],
    ) -> list[Seat]:
        seats = await uow.inventory_repo.lock_seats(seat_ids=list(seat_ids))
        if len(seats) != len(seat_ids) or any(s.event_id != event_id for s in seats):
            raise ValidationError('Unknown seat for this event', field='seat_ids')
        taken = [s.label for s in seats if s.status != SeatStatus.AVAILABLE]
        if taken:
            raise InsufficientError(f'Seats already taken: {", ".join(sorted(taken))}')

        moved = await uow.inventory_repo.update_seat_status(
            seat_ids=[s.id for s in seats],
            from_status=SeatStatus.AVAILABLE,
            to_status=SeatStatus.HELD,
            reservation_id=reservation_id,
        )
        if moved != len(seats):
            raise ConflictingStateError('Seat status changed concurrently')
        return seats
