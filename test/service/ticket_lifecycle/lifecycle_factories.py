"""Builders for lifecycle domain objects with sensible defaults."""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from uuid_utils.compat import uuid7

from src.service.ticket_lifecycle.domain.entity.event_entity import Event, PricingTier
from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.enum.ticket_format import (
    CredentialFormat,
    TicketFormat,
    TicketType,
)
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus


def make_event(
    *,
    now: datetime,
    starts_in: timedelta = timedelta(days=30),
    duration: timedelta = timedelta(hours=4),
    capacity: int = 100,
    available: Optional[int] = None,
    base_price: str = '50.00',
    currency: str = 'USD',
    organizer_id: Optional[UUID] = None,
    **overrides: Any,
) -> Event:
    start = now + starts_in
    return Event(
        id=uuid7(),
        organizer_id=organizer_id or uuid7(),
        title='Summer Open Air',
        total_capacity=capacity,
        available_tickets=capacity if available is None else available,
        currency=currency,
        base_price=Decimal(base_price),
        start_date=start,
        end_date=start + duration,
        created_at=now,
        **overrides,
    )


def make_tier(
    *,
    event: Event,
    total: int = 10,
    available: Optional[int] = None,
    base_price: str = '100.00',
    name: str = 'Floor',
) -> PricingTier:
    return PricingTier(
        id=uuid7(),
        event_id=event.id,
        name=name,
        base_price=Decimal(base_price),
        total_tickets=total,
        available_tickets=total if available is None else available,
    )


def make_order(
    *,
    now: datetime,
    total: str = '300.00',
    paid: str = '0.00',
    user_id: Optional[UUID] = None,
    currency: str = 'USD',
) -> Order:
    return Order.open(
        id=uuid7(),
        user_id=user_id or uuid7(),
        total_amount=Decimal(total),
        amount_paid=Decimal(paid),
        currency=currency,
        now=now,
    )


def make_ticket(
    *,
    now: datetime,
    event: Event,
    status: TicketStatus = TicketStatus.CONFIRMED,
    user_id: Optional[UUID] = None,
    order_id: Optional[UUID] = None,
    total_price: str = '110.00',
    **overrides: Any,
) -> Ticket:
    owner = user_id or uuid7()
    return Ticket(
        id=uuid7(),
        ticket_number='TKT-1780315200000-A1B2C3',
        event_id=event.id,
        user_id=owner,
        purchaser_id=owner,
        order_id=order_id or uuid7(),
        line_index=0,
        unit_index=0,
        ticket_type=TicketType.GENERAL,
        ticket_format=TicketFormat.DIGITAL,
        credential_format=CredentialFormat.QR_CODE,
        unit_price=Decimal('100.00'),
        service_fee=Decimal('10.00'),
        total_price=Decimal(total_price),
        currency=event.currency,
        valid_until=event.end_date,
        created_at=now,
        status=status,
        **overrides,
    )
