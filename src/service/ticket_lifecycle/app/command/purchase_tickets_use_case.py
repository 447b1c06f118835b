from decimal import Decimal
from typing import Optional, Self, Sequence
from uuid import UUID

import attrs
from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace
from uuid_utils.compat import uuid7

from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import NotFoundError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.dto.lifecycle_results import PurchaseResult
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.service.line_pricer import LinePricer
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.app.service.ticket_issuer import TicketIssuer
from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.ticket_format import (
    CredentialFormat,
    TicketFormat,
    TicketType,
)
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.value_object.inventory_line import InventoryLine


class PurchaseTicketsUseCase:
    """
    Direct purchase without a cart

    Goes through the same hold as checkout: the line is held, an unpaid
    order is opened with reserved tickets, and the buyer then pays through
    ``confirm_payment`` or an order payment. An unpaid hold that expires takes
    the reserved tickets with it.
    """

    def __init__(
        self,
        *,
        uow: AbstractUnitOfWork,
        reservations: ReservationManager,
        pricer: LinePricer,
        issuer: TicketIssuer,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow = uow
        self.reservations = reservations
        self.pricer = pricer
        self.issuer = issuer
        self.clock = clock
        self.audit_trail = audit_trail
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        reservations: ReservationManager = Depends(Provide[Container.reservation_manager]),
        pricer: LinePricer = Depends(Provide[Container.line_pricer]),
        issuer: TicketIssuer = Depends(Provide[Container.ticket_issuer]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(
            uow=uow,
            reservations=reservations,
            pricer=pricer,
            issuer=issuer,
            clock=clock,
            audit_trail=audit_trail,
        )

    @Logger.io
    async def execute(
        self,
        *,
        user_id: UUID,
        event_id: UUID,
        quantity: int,
        ticket_type: TicketType = TicketType.GENERAL,
        ticket_format: TicketFormat = TicketFormat.DIGITAL,
        credential_format: CredentialFormat = CredentialFormat.QR_CODE,
        tier_id: Optional[UUID] = None,
        session_id: Optional[UUID] = None,
        seat_numbers: Sequence[str] = (),
    ) -> PurchaseResult:
        with self.tracer.start_as_current_span(
            'use_case.purchase_tickets',
            attributes={
                'user.id': str(user_id),
                'event.id': str(event_id),
                'quantity': quantity,
            },
        ):
            now = self.clock.now()
            async with self.uow:
                seat_ids: list[UUID] = []
                if seat_numbers:
                    seats = await self.uow.event_repo.find_seats_by_label(
                        event_id=event_id, labels=list(seat_numbers)
                    )
                    if len(seats) != len(set(seat_numbers)):
                        found = {seat.label for seat in seats}
                        missing = ', '.join(s for s in seat_numbers if s not in found)
                        raise ValidationError(f'Unknown seats: {missing}', field='seat_numbers')
                    seat_ids = [seat.id for seat in seats]
                    quantity = len(seat_ids)

                line = InventoryLine(
                    event_id=event_id,
                    quantity=quantity,
                    tier_id=tier_id,
                    session_id=session_id,
                    seat_ids=seat_ids,
                    ticket_type=ticket_type,
                    ticket_format=ticket_format,
                    credential_format=credential_format,
                )
                # hold() locks the event row before anything else
                held = await self.reservations.hold(
                    self.uow, user_id=user_id, lines=[line], now=now
                )
                reservation = held[0]
                event = await self.uow.event_repo.get_by_id(event_id=event_id)
                if event is None:
                    raise NotFoundError('Event not found')
                quote = await self.pricer.quote(self.uow, line=line, event=event)

                order = Order.open(
                    id=uuid7(),
                    user_id=user_id,
                    total_amount=quote.total.amount,
                    amount_paid=Decimal('0.00'),
                    currency=quote.currency,
                    now=now,
                    metadata={'reservation_ids': [str(reservation.id)], 'source': 'purchase'},
                )
                await self.uow.order_repo.create(order=order)
                reservation = await self.uow.reservation_repo.update(
                    reservation=attrs.evolve(reservation, order_id=order.id)
                )
                tickets = await self.issuer.issue(
                    self.uow,
                    order=order,
                    line_index=0,
                    line=line,
                    quote=quote,
                    event=event,
                    status=TicketStatus.RESERVED,
                    now=now,
                    reservation_id=reservation.id,
                    seats=await self.uow.event_repo.get_seats(seat_ids=seat_ids),
                )
                await self.uow.commit()

            Logger.base.info(
                f'🎫 [PURCHASE] User {user_id} reserved {len(tickets)} ticket(s) for event '
                f'{event_id}: order {order.id} {order.total_amount} {order.currency}'
            )
            await self.audit_trail.record_all(
                [
                    AuditEntry(
                        action=AuditAction.RESERVATION_HELD,
                        resource_kind=ResourceKind.RESERVATION,
                        resource_id=reservation.id,
                        actor_id=user_id,
                        after=snapshot(reservation, 'status', 'event_id', 'quantity', 'expires_at'),
                        metadata={'order_id': order.id},
                    ),
                    AuditEntry(
                        action=AuditAction.ORDER_RESERVED,
                        resource_kind=ResourceKind.ORDER,
                        resource_id=order.id,
                        actor_id=user_id,
                        after=snapshot(order, 'status', 'total_amount', 'balance_due', 'currency'),
                    ),
                    *(
                        AuditEntry(
                            action=AuditAction.TICKET_ISSUED,
                            resource_kind=ResourceKind.TICKET,
                            resource_id=ticket.id,
                            actor_id=user_id,
                            after=snapshot(ticket, 'status', 'ticket_number', 'total_price'),
                        )
                        for ticket in tickets
                    ),
                ]
            )
            return PurchaseResult(order=order, tickets=tickets, reservation=reservation)
