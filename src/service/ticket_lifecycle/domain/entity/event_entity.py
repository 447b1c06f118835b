from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import attrs

from src.platform.exception.exceptions import ConflictingStateError, NotFoundError, ValidationError
from src.service.ticket_lifecycle.domain.enum.event_status import EventStatus
from src.service.ticket_lifecycle.domain.enum.seat_status import SeatStatus


@attrs.define
class Event:
    """
    Sellable event

    ``available_tickets`` is the event-level pool; every hold that is not scoped
    to a session draws from it as well as from its tier.
    """

    id: UUID
    organizer_id: UUID
    title: str
    total_capacity: int
    available_tickets: int
    currency: str
    base_price: Decimal
    start_date: datetime
    end_date: datetime
    status: EventStatus = EventStatus.PUBLISHED
    sales_start_date: Optional[datetime] = None
    sales_end_date: Optional[datetime] = None
    is_streaming: bool = False
    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def has_started(self, now: datetime) -> bool:
        return now >= self.start_date

    def has_ended(self, now: datetime) -> bool:
        return now > self.end_date

    def ensure_on_sale(self, now: datetime) -> None:
        if self.deleted_at is not None:
            raise NotFoundError('Event not found')
        if not self.status.is_sellable:
            raise ConflictingStateError(
                f'Event is {self.status}, tickets are not on sale',
                current_state=str(self.status),
            )
        if self.sales_start_date and now < self.sales_start_date:
            raise ValidationError('Ticket sales have not opened yet', field='event_id')
        if self.sales_end_date and now > self.sales_end_date:
            raise ValidationError('Ticket sales are closed', field='event_id')
        if self.has_started(now):
            raise ValidationError('Event has already started', field='event_id')


@attrs.define
class PricingTier:
    id: UUID
    event_id: UUID
    name: str
    base_price: Decimal
    total_tickets: int
    available_tickets: int
    sales_start_date: Optional[datetime] = None
    sales_end_date: Optional[datetime] = None
    is_active: bool = True

    def ensure_on_sale(self, now: datetime) -> None:
        if not self.is_active:
            raise ValidationError(f'Tier {self.name} is not available', field='tier_id')
        if self.sales_start_date and now < self.sales_start_date:
            raise ValidationError(f'Tier {self.name} is not on sale yet', field='tier_id')
        if self.sales_end_date and now > self.sales_end_date:
            raise ValidationError(f'Tier {self.name} sales are closed', field='tier_id')


@attrs.define
class EventSession:
    """Optional subdivision of an event (a day, a showing) with its own capacity."""

    id: UUID
    event_id: UUID
    name: str
    capacity: int
    available_seats: int
    start_time: datetime
    base_price_override: Optional[Decimal] = None
    is_active: bool = True

    def ensure_on_sale(self, now: datetime) -> None:
        if not self.is_active:
            raise ValidationError(f'Session {self.name} is not active', field='session_id')
        if now >= self.start_time:
            raise ValidationError(f'Session {self.name} has already started', field='session_id')


@attrs.define
class Seat:
    id: UUID
    event_id: UUID
    tier_id: UUID
    section: str
    row: str
    number: str
    status: SeatStatus = SeatStatus.AVAILABLE
    reservation_id: Optional[UUID] = None

    @property
    def label(self) -> str:
        return f'{self.section}-{self.row}-{self.number}'
