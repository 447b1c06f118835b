"""
Ticket Issuer

Mints one Ticket per purchased unit. Issuing is idempotent per
(order, line index): a retried completion finds the line's tickets and returns
them instead of minting duplicates.
"""

from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

import attrs
from uuid_utils.compat import uuid7

from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.exception.exceptions import InternalError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics
from src.service.ticket_lifecycle.domain.credential_domain import (
    build_credential,
    generate_stream_access_token,
    generate_ticket_number,
)
from src.service.ticket_lifecycle.domain.entity.event_entity import Event, Seat
from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.value_object.inventory_line import InventoryLine
from src.service.ticket_lifecycle.domain.value_object.price_quote import PriceQuote


TICKET_NUMBER_ATTEMPTS = 5


class TicketIssuer:
    @Logger.io
    async def issue(
        self,
        uow: AbstractUnitOfWork,
        *,
        order: Order,
        line_index: int,
        line: InventoryLine,
        quote: PriceQuote,
        event: Event,
        status: TicketStatus,
        now: datetime,
        reservation_id: Optional[UUID] = None,
        seats: Sequence[Seat] = (),
    ) -> list[Ticket]:
        existing = await uow.ticket_repo.list_by_order_line(
            order_id=order.id, line_index=line_index
        )
        if existing:
            Logger.base.info(
                f'🎫 [ISSUE] Order {order.id} line {line_index} already issued, reusing tickets'
            )
            return existing

        seats_by_id = {seat.id: seat for seat in seats}
        tickets = []
        taken: set[str] = set()
        for unit_index in range(line.quantity):
            seat_id = line.seat_ids[unit_index] if line.seat_ids else None
            seat = seats_by_id.get(seat_id) if seat_id else None
            ticket_number = await self._unique_ticket_number(uow, now=now, taken=taken)
            taken.add(ticket_number)
            ticket = Ticket(
                id=uuid7(),
                ticket_number=ticket_number,
                event_id=event.id,
                session_id=line.session_id,
                tier_id=seat.tier_id if seat else line.tier_id,
                seat_id=seat_id,
                seat_label=seat.label if seat else None,
                user_id=order.user_id,
                purchaser_id=order.user_id,
                order_id=order.id,
                reservation_id=reservation_id,
                line_index=line_index,
                unit_index=unit_index,
                ticket_type=line.ticket_type,
                ticket_format=line.ticket_format,
                credential_format=line.credential_format,
                unit_price=quote.unit_price.amount,
                service_fee=quote.service_fee.amount,
                total_price=quote.unit_total.amount,
                currency=quote.currency,
                status=status,
                valid_until=event.end_date,
                stream_access_token=generate_stream_access_token() if event.is_streaming else None,
                created_at=now,
                updated_at=now,
            )
            tickets.append(self.with_fresh_credential(ticket, now=now))

        await uow.ticket_repo.create_many(tickets=tickets)
        metrics.tickets_issued.labels(credential_format=line.credential_format.value).inc(
            len(tickets)
        )
        return tickets

    def with_fresh_credential(self, ticket: Ticket, *, now: datetime) -> Ticket:
        """Mint a credential bound to the ticket's current owner."""
        credential = build_credential(
            ticket.credential_format,
            ticket_number=ticket.ticket_number,
            event_id=ticket.event_id,
            user_id=ticket.current_owner(),
            now=now,
        )
        return ticket.with_credential(credential, now=now)

    @Logger.io
    def rotate_credentials(self, ticket: Ticket, *, now: datetime) -> Ticket:
        """Replace the credential after an ownership change; the old payload stops admitting."""
        rotated = self.with_fresh_credential(ticket, now=now)
        if ticket.stream_access_token is not None:
            rotated = attrs.evolve(rotated, stream_access_token=generate_stream_access_token())
        return rotated

    async def _unique_ticket_number(
        self, uow: AbstractUnitOfWork, *, now: datetime, taken: set[str]
    ) -> str:
        for _ in range(TICKET_NUMBER_ATTEMPTS):
            candidate = generate_ticket_number(now)
            if candidate in taken:
                continue
            if not await uow.ticket_repo.ticket_number_exists(ticket_number=candidate):
                return candidate
        raise InternalError('Could not allocate a unique ticket number')
