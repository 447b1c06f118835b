from collections import Counter
from datetime import datetime
from typing import Optional, Self
from uuid import UUID

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import (
    ConflictingStateError,
    ForbiddenError,
    NotFoundError,
)
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.dto.lifecycle_results import OrderDetail
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.service.inventory_ledger import InventoryLedger
from src.service.ticket_lifecycle.app.service.order_payment_service import OrderPaymentService
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.entity.reservation_entity import Reservation
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentStatus
from src.service.ticket_lifecycle.domain.enum.seat_status import SeatStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus


_CAPTURED = (PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED)


class CancelOrderUseCase:
    """
    Cancel an order before its event starts

    Held reservations go back through the reservation manager; tickets whose
    hold was already consumed give their units back to the counters directly.
    Pending payments fail. Completed payments are never refunded automatically;
    they are flagged for manual review.
    """

    def __init__(
        self,
        *,
        uow: AbstractUnitOfWork,
        reservations: ReservationManager,
        ledger: InventoryLedger,
        payments: OrderPaymentService,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow = uow
        self.reservations = reservations
        self.ledger = ledger
        self.payments = payments
        self.clock = clock
        self.audit_trail = audit_trail
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        reservations: ReservationManager = Depends(Provide[Container.reservation_manager]),
        ledger: InventoryLedger = Depends(Provide[Container.inventory_ledger]),
        payments: OrderPaymentService = Depends(Provide[Container.order_payment_service]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(
            uow=uow,
            reservations=reservations,
            ledger=ledger,
            payments=payments,
            clock=clock,
            audit_trail=audit_trail,
        )

    @Logger.io
    async def execute(
        self,
        *,
        user_id: UUID,
        order_id: UUID,
        reason: Optional[str] = None,
        acting_as_operator: bool = False,
    ) -> OrderDetail:
        with self.tracer.start_as_current_span(
            'use_case.cancel_order', attributes={'order.id': str(order_id)}
        ):
            now = self.clock.now()
            async with self.uow:
                order = await self.uow.order_repo.get_by_id(order_id=order_id)
                if order is None:
                    raise NotFoundError('Order not found')
                if order.user_id != user_id and not acting_as_operator:
                    raise ForbiddenError('Order belongs to another user')
                tickets = await self.uow.ticket_repo.list_by_order(order_id=order_id)

                # Lock order: events, reservations, order, tickets, payments
                events = await self.reservations.lock_events(
                    self.uow, event_ids=[t.event_id for t in tickets]
                )
                if any(event.has_started(now) for event in events.values()):
                    raise ConflictingStateError(
                        'Orders cannot be cancelled once the event has started',
                        current_state=str(order.status),
                    )
                held = [
                    r
                    for r in await self.uow.reservation_repo.lock_many(
                        reservation_ids=order.reservation_ids
                    )
                    if r.is_active
                ]
                locked = await self.uow.order_repo.get_by_id(order_id=order_id, for_update=True)
                if locked is None:
                    raise NotFoundError('Order not found')
                cancelled_order = locked.cancel(
                    reason=reason or 'Cancelled by customer', now=now
                )
                tickets = await self.uow.ticket_repo.list_by_order(
                    order_id=order_id, for_update=True
                )
                payments = await self.uow.payment_repo.list_by_order(
                    order_id=order_id, for_update=True
                )

                released = [
                    await self.reservations.release(
                        self.uow, reservation=r, reason='order_cancelled', now=now
                    )
                    for r in held
                ]
                cancelled_tickets = await self._cancel_tickets(
                    tickets, held_ids={r.id for r in held}, now=now
                )
                failed_payments: list[Payment] = []
                for payment in payments:
                    if payment.status == PaymentStatus.PENDING:
                        failed = await self.payments.mark_failed(
                            self.uow, payment_id=payment.id, reason='Order cancelled', now=now
                        )
                        if failed is not None:
                            failed_payments.append(failed)
                    elif payment.status in _CAPTURED and not payment.is_credit:
                        await self.uow.payment_repo.update(
                            payment=payment.flag_for_review(
                                reason='Order cancelled with captured funds', now=now
                            )
                        )
                await self.uow.order_repo.update(order=cancelled_order)
                await self.uow.commit()

            if cancelled_order.amount_paid > cancelled_order.refunded_amount:
                Logger.base.warning(
                    f'💸 [ORDER] {order_id} cancelled with '
                    f'{cancelled_order.refundable_amount} {cancelled_order.currency} paid; '
                    f'payments flagged for manual refund'
                )
            Logger.base.info(
                f'🚫 [ORDER] {order_id} cancelled: {len(cancelled_tickets)} ticket(s), '
                f'{len(released)} hold(s) released'
            )
            await self._audit(
                user_id=user_id,
                before=locked,
                order=cancelled_order,
                tickets=cancelled_tickets,
                released=released,
                failed_payments=failed_payments,
            )
            tickets_after = {t.id: t for t in [*tickets, *cancelled_tickets]}
            payments_after = {p.id: p for p in [*payments, *failed_payments]}
            return OrderDetail(
                order=cancelled_order,
                tickets=list(tickets_after.values()),
                payments=list(payments_after.values()),
            )

    async def _cancel_tickets(
        self, tickets: list[Ticket], *, held_ids: set[UUID], now: datetime
    ) -> list[Ticket]:
        """Cancel live tickets; units not covered by a held reservation go back to the counters."""
        cancelled: list[Ticket] = []
        returned: Counter[tuple[UUID, Optional[UUID], Optional[UUID]]] = Counter()
        seat_ids: list[tuple[UUID, UUID]] = []
        for ticket in tickets:
            if ticket.status in (TicketStatus.CANCELLED, TicketStatus.REFUNDED):
                continue
            cancelled.append(await self.uow.ticket_repo.update(ticket=ticket.cancel(now=now)))
            if ticket.reservation_id in held_ids:
                continue
            if ticket.seat_id is not None:
                seat_ids.append((ticket.event_id, ticket.seat_id))
            else:
                returned[(ticket.event_id, ticket.tier_id, ticket.session_id)] += 1

        for (event_id, tier_id, session_id), quantity in sorted(returned.items(), key=str):
            await self.ledger.increment(
                self.uow,
                event_id=event_id,
                quantity=quantity,
                tier_id=tier_id,
                session_id=session_id,
                seat_status=SeatStatus.SOLD,
            )
        for event_id in sorted({event_id for event_id, _ in seat_ids}):
            seats = [seat_id for eid, seat_id in seat_ids if eid == event_id]
            await self.ledger.increment(
                self.uow,
                event_id=event_id,
                quantity=len(seats),
                seat_ids=seats,
                seat_status=SeatStatus.SOLD,
            )
        return cancelled

    async def _audit(
        self,
        *,
        user_id: UUID,
        before: Order,
        order: Order,
        tickets: list[Ticket],
        released: list[Reservation],
        failed_payments: list[Payment],
    ) -> None:
        entries = [
            AuditEntry(
                action=AuditAction.ORDER_CANCELLED,
                resource_kind=ResourceKind.ORDER,
                resource_id=order.id,
                actor_id=user_id,
                before=snapshot(before, 'status', 'amount_paid', 'balance_due'),
                after=snapshot(order, 'status', 'cancellation_reason', 'cancelled_at'),
            )
        ]
        entries.extend(
            AuditEntry(
                action=AuditAction.TICKET_CANCELLED,
                resource_kind=ResourceKind.TICKET,
                resource_id=ticket.id,
                actor_id=user_id,
                after=snapshot(ticket, 'status'),
                metadata={'order_id': order.id},
            )
            for ticket in tickets
        )
        entries.extend(
            AuditEntry(
                action=AuditAction.RESERVATION_RELEASED,
                resource_kind=ResourceKind.RESERVATION,
                resource_id=reservation.id,
                actor_id=user_id,
                after=snapshot(reservation, 'status', 'release_reason'),
            )
            for reservation in released
        )
        entries.extend(
            AuditEntry(
                action=AuditAction.PAYMENT_FAILED,
                resource_kind=ResourceKind.PAYMENT,
                resource_id=payment.id,
                actor_id=user_id,
                after=snapshot(payment, 'status', 'amount'),
                metadata={'reason': 'Order cancelled'},
            )
            for payment in failed_payments
        )
        await self.audit_trail.record_all(entries)
