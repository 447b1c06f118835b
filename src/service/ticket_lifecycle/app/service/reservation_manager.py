"""
Reservation Manager

Short-lived claims on inventory for an in-flight checkout or a legacy
purchase. Every method takes the caller's unit of work and expects the
event rows of the reservations involved to be locked first (``hold`` and
``release_many`` take those locks themselves).
"""

from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional, Sequence
from uuid import UUID

import attrs
from uuid_utils.compat import uuid7

from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.exception.exceptions import (
    ForbiddenError,
    InsufficientError,
    NotFoundError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics
from src.service.ticket_lifecycle.app.dto.lifecycle_results import ReservationSweepResult
from src.service.ticket_lifecycle.app.service.inventory_ledger import InventoryLedger
from src.service.ticket_lifecycle.domain.entity.event_entity import Event
from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.entity.reservation_entity import Reservation
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.enum.seat_status import SeatStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.value_object.inventory_line import InventoryLine


DEFAULT_HOLD_TTL = timedelta(minutes=15)


class ReservationManager:
    def __init__(self, *, ledger: InventoryLedger, ttl: timedelta = DEFAULT_HOLD_TTL) -> None:
        self.ledger = ledger
        self.ttl = ttl

    @Logger.io
    async def hold(
        self,
        uow: AbstractUnitOfWork,
        *,
        user_id: UUID,
        lines: Sequence[InventoryLine],
        now: datetime,
        ttl: Optional[timedelta] = None,
        checkout_id: Optional[UUID] = None,
    ) -> list[Reservation]:
        """
        Hold capacity for every line, all or nothing

        Raises:
            InsufficientError: some counter cannot cover its line; the caller
                must roll back so earlier lines are given back too
        """
        events = await self.lock_events(uow, event_ids=[line.event_id for line in lines])
        reservations: list[Reservation] = []
        try:
            for line in lines:
                event = events.get(line.event_id)
                if event is None:
                    raise NotFoundError('Event not found')
                await self.ensure_line_on_sale(uow, event=event, line=line, now=now)

                reservation = Reservation.hold(
                    id=uuid7(),
                    user_id=user_id,
                    line=line,
                    now=now,
                    ttl=ttl or self.ttl,
                    checkout_id=checkout_id,
                )
                await uow.reservation_repo.create(reservation=reservation)
                await self.ledger.decrement(
                    uow,
                    event_id=line.event_id,
                    quantity=line.quantity,
                    tier_id=line.tier_id,
                    session_id=line.session_id,
                    seat_ids=line.seat_ids,
                    reservation_id=reservation.id,
                )
                reservations.append(reservation)
        except InsufficientError:
            metrics.record_hold(result='insufficient')
            raise

        for reservation in reservations:
            metrics.record_hold(result='held')
        Logger.base.info(
            f'🎟️ [HOLD] {len(reservations)} reservation(s) held for user {user_id} '
            f'until {reservations[0].expires_at.isoformat() if reservations else "-"}'
        )
        return reservations

    async def lock_events(
        self, uow: AbstractUnitOfWork, *, event_ids: Sequence[UUID]
    ) -> dict[UUID, Event]:
        locked = await uow.event_repo.lock_events(event_ids=sorted(set(event_ids)))
        return {event.id: event for event in locked}

    async def ensure_line_on_sale(
        self, uow: AbstractUnitOfWork, *, event: Event, line: InventoryLine, now: datetime
    ) -> None:
        event.ensure_on_sale(now)
        if line.tier_id is not None:
            tier = await uow.event_repo.get_tier(tier_id=line.tier_id)
            if tier is None:
                raise NotFoundError('Pricing tier not found')
            if tier.event_id != event.id:
                raise ValidationError('Tier does not belong to this event', field='tier_id')
            tier.ensure_on_sale(now)
        if line.session_id is not None:
            session = await uow.event_repo.get_session(session_id=line.session_id)
            if session is None:
                raise NotFoundError('Event session not found')
            if session.event_id != event.id:
                raise ValidationError('Session does not belong to this event', field='session_id')
            session.ensure_on_sale(now)

    @Logger.io
    async def confirm(
        self,
        uow: AbstractUnitOfWork,
        *,
        reservation_ids: Sequence[UUID],
        user_id: UUID,
        payment_id: Optional[UUID],
        now: datetime,
        order_id: Optional[UUID] = None,
    ) -> list[Reservation]:
        """Consume held reservations; the tickets now stand in for the hold."""
        locked = await uow.reservation_repo.lock_many(reservation_ids=list(reservation_ids))
        if len(locked) != len(set(reservation_ids)):
            raise NotFoundError('Reservation not found')

        confirmed = []
        for reservation in locked:
            if reservation.user_id != user_id:
                raise ForbiddenError('Reservation belongs to another user')
            updated = reservation.confirm(payment_id=payment_id, now=now)
            if order_id is not None:
                updated = attrs.evolve(updated, order_id=order_id)
            await self.ledger.mark_seats_sold(uow, seat_ids=updated.seat_ids)
            confirmed.append(await uow.reservation_repo.update(reservation=updated))
        return confirmed

    @Logger.io
    async def release(
        self, uow: AbstractUnitOfWork, *, reservation: Reservation, reason: str, now: datetime
    ) -> Reservation:
        released = reservation.release(reason=reason, now=now)
        await self.ledger.increment(
            uow,
            event_id=reservation.event_id,
            quantity=reservation.quantity,
            tier_id=reservation.tier_id,
            session_id=reservation.session_id,
            seat_ids=reservation.seat_ids,
            seat_status=SeatStatus.HELD,
        )
        await uow.reservation_repo.update(reservation=released)
        metrics.record_release(reason=reason)
        return released

    @Logger.io
    async def release_many(
        self,
        uow: AbstractUnitOfWork,
        *,
        reservation_ids: Sequence[UUID],
        reason: str,
        now: datetime,
    ) -> list[Reservation]:
        """Release whichever of the reservations are still held; the rest are skipped."""
        if not reservation_ids:
            return []
        current = [
            r
            for r in [
                await uow.reservation_repo.get_by_id(reservation_id=rid) for rid in reservation_ids
            ]
            if r is not None
        ]
        await self.lock_events(uow, event_ids=[r.event_id for r in current])
        locked = await uow.reservation_repo.lock_many(reservation_ids=[r.id for r in current])
        return [
            await self.release(uow, reservation=r, reason=reason, now=now)
            for r in locked
            if r.is_active
        ]

    @Logger.io
    async def give_back(
        self,
        uow: AbstractUnitOfWork,
        *,
        reservation: Reservation,
        quantity: int,
        seat_ids: Sequence[UUID],
        now: datetime,
    ) -> Reservation:
        """Return part of a held reservation to inventory (a reserved ticket was cancelled)."""
        shrunk = reservation.shrink(by=quantity, now=now)
        if shrunk.is_active and seat_ids:
            shrunk = attrs.evolve(
                shrunk, seat_ids=[s for s in shrunk.seat_ids if s not in set(seat_ids)]
            )
        await self.ledger.increment(
            uow,
            event_id=reservation.event_id,
            quantity=quantity,
            tier_id=reservation.tier_id,
            session_id=reservation.session_id,
            seat_ids=seat_ids,
            seat_status=SeatStatus.HELD,
        )
        await uow.reservation_repo.update(reservation=shrunk)
        metrics.record_release(reason='cancel', count=quantity)
        return shrunk

    @Logger.io
    async def sweep(
        self,
        *,
        uow_factory: Callable[[], AbstractUnitOfWork],
        now: datetime,
        batch_size: int,
    ) -> ReservationSweepResult:
        """
        Release every held reservation past ``expires_at``

        Candidates are read without locks, then each event's batch is
        re-checked under ``FOR UPDATE SKIP LOCKED`` in its own transaction,
        so concurrent sweepers never release the same reservation twice.
        """
        async with uow_factory() as uow:
            candidates = await uow.reservation_repo.find_expired_held(now=now, limit=batch_size)

        by_event: dict[UUID, list[UUID]] = defaultdict(list)
        for candidate in candidates:
            by_event[candidate.event_id].append(candidate.id)

        released: list[Reservation] = []
        cancelled_orders: list[Order] = []
        for event_id, reservation_ids in sorted(by_event.items()):
            async with uow_factory() as uow:
                await uow.event_repo.lock_events(event_ids=[event_id])
                locked = await uow.reservation_repo.lock_many(
                    reservation_ids=reservation_ids, skip_locked=True
                )
                batch_released: list[Reservation] = []
                batch_cancelled: list[Order] = []
                for reservation in locked:
                    if not (reservation.is_active and reservation.is_expired(now)):
                        continue
                    batch_released.append(
                        await self.release(uow, reservation=reservation, reason='expired', now=now)
                    )
                    if reservation.order_id is not None:
                        order = await self._drop_unpaid_units(
                            uow, reservation=reservation, now=now
                        )
                        if order is not None:
                            batch_cancelled.append(order)
                await uow.commit()
            released.extend(batch_released)
            cancelled_orders.extend(batch_cancelled)

        metrics.record_sweep(sweep='reservations', processed=len(released))
        if released:
            Logger.base.info(f'🧹 [SWEEP] Released {len(released)} expired reservation(s)')
        return ReservationSweepResult(released=released, cancelled_orders=cancelled_orders)

    async def _drop_unpaid_units(
        self, uow: AbstractUnitOfWork, *, reservation: Reservation, now: datetime
    ) -> Optional[Order]:
        """
        An expired hold behind an unpaid order takes its reserved tickets with it.

        Returns:
            The order when it ended up cancelled
        """
        if reservation.order_id is None:
            return None
        order = await uow.order_repo.get_by_id(order_id=reservation.order_id, for_update=True)
        if order is None or order.status != OrderStatus.RESERVED:
            return None

        tickets = await uow.ticket_repo.list_by_order(order_id=order.id, for_update=True)
        dropped = 0
        dropped_amount = Decimal('0.00')
        for ticket in tickets:
            if ticket.reservation_id == reservation.id and ticket.status == TicketStatus.RESERVED:
                await uow.ticket_repo.update(ticket=ticket.cancel(now=now))
                dropped += 1
                dropped_amount += ticket.total_price
        if not dropped:
            return None

        live = [
            t
            for t in tickets
            if t.status != TicketStatus.CANCELLED and t.reservation_id != reservation.id
        ]
        if live:
            await uow.order_repo.update(
                order=order.drop_line_amount(amount=dropped_amount, now=now)
            )
            return None
        cancelled = order.cancel(reason='Reservation expired before payment', now=now)
        await uow.order_repo.update(order=cancelled)
        return cancelled
