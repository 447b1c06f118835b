from typing import Optional, Self
from uuid import UUID

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import (
    ConflictingStateError,
    ForbiddenError,
    NotFoundError,
)
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.dto.lifecycle_results import TicketCancellation
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.service.inventory_ledger import InventoryLedger
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.domain.entity.reservation_entity import Reservation
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.enum.seat_status import SeatStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus


class CancelTicketUseCase:
    """
    Cancel one unpaid (reserved) ticket

    Paid tickets go through the refund flow instead. The ticket's price comes
    off the order; cancelling the last live ticket cancels the order.
    """

    def __init__(
        self,
        *,
        uow: AbstractUnitOfWork,
        reservations: ReservationManager,
        ledger: InventoryLedger,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow = uow
        self.reservations = reservations
        self.ledger = ledger
        self.clock = clock
        self.audit_trail = audit_trail

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        reservations: ReservationManager = Depends(Provide[Container.reservation_manager]),
        ledger: InventoryLedger = Depends(Provide[Container.inventory_ledger]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(
            uow=uow,
            reservations=reservations,
            ledger=ledger,
            clock=clock,
            audit_trail=audit_trail,
        )

    @Logger.io
    async def execute(self, *, user_id: UUID, ticket_id: UUID) -> TicketCancellation:
        now = self.clock.now()
        async with self.uow:
            ticket = await self.uow.ticket_repo.get_by_id(ticket_id=ticket_id)
            if ticket is None:
                raise NotFoundError('Ticket not found')
            if ticket.current_owner() != user_id:
                raise ForbiddenError('Ticket belongs to another user')

            # Lock order: event, reservation, order, ticket
            await self.reservations.lock_events(self.uow, event_ids=[ticket.event_id])
            reservation: Optional[Reservation] = None
            if ticket.reservation_id is not None:
                locked_reservations = await self.uow.reservation_repo.lock_many(
                    reservation_ids=[ticket.reservation_id]
                )
                reservation = locked_reservations[0] if locked_reservations else None
            order = await self.uow.order_repo.get_by_id(order_id=ticket.order_id, for_update=True)
            if order is None:
                raise NotFoundError('Order not found')
            siblings = await self.uow.ticket_repo.list_by_order(
                order_id=order.id, for_update=True
            )
            ticket = next(t for t in siblings if t.id == ticket_id)
            if ticket.status != TicketStatus.RESERVED:
                raise ConflictingStateError(
                    f'Ticket is {ticket.status}, only reserved tickets can be cancelled',
                    current_state=str(ticket.status),
                )

            others_live = any(t.id != ticket.id and t.status.is_live for t in siblings)
            if others_live:
                updated_order = order.drop_line_amount(amount=ticket.total_price, now=now)
            else:
                updated_order = order.cancel(reason='All tickets cancelled', now=now)

            seat_ids = [ticket.seat_id] if ticket.seat_id else []
            returned_hold: Optional[Reservation] = None
            if reservation is not None and reservation.is_active:
                returned_hold = await self.reservations.give_back(
                    self.uow, reservation=reservation, quantity=1, seat_ids=seat_ids, now=now
                )
            else:
                await self.ledger.increment(
                    self.uow,
                    event_id=ticket.event_id,
                    quantity=1,
                    tier_id=ticket.tier_id,
                    session_id=ticket.session_id,
                    seat_ids=seat_ids,
                    seat_status=SeatStatus.SOLD,
                )
            cancelled = await self.uow.ticket_repo.update(ticket=ticket.cancel(now=now))
            await self.uow.order_repo.update(order=updated_order)
            await self.uow.commit()

        Logger.base.info(
            f'🚫 [TICKET] {cancelled.ticket_number} cancelled, order {order.id} '
            f'-> {updated_order.status} ({updated_order.total_amount} {updated_order.currency})'
        )
        entries = [
            AuditEntry(
                action=AuditAction.TICKET_CANCELLED,
                resource_kind=ResourceKind.TICKET,
                resource_id=cancelled.id,
                actor_id=user_id,
                before=snapshot(ticket, 'status'),
                after=snapshot(cancelled, 'status'),
                metadata={'order_id': order.id},
            )
        ]
        if updated_order.status == OrderStatus.CANCELLED:
            entries.append(
                AuditEntry(
                    action=AuditAction.ORDER_CANCELLED,
                    resource_kind=ResourceKind.ORDER,
                    resource_id=order.id,
                    actor_id=user_id,
                    before=snapshot(order, 'status', 'total_amount'),
                    after=snapshot(updated_order, 'status', 'cancellation_reason'),
                )
            )
        if returned_hold is not None and not returned_hold.is_active:
            entries.append(
                AuditEntry(
                    action=AuditAction.RESERVATION_RELEASED,
                    resource_kind=ResourceKind.RESERVATION,
                    resource_id=returned_hold.id,
                    actor_id=user_id,
                    after=snapshot(returned_hold, 'status', 'release_reason'),
                )
            )
        await self.audit_trail.record_all(entries)
        return TicketCancellation(ticket=cancelled, order=updated_order)
