from datetime import datetime
from decimal import Decimal
from typing import Optional
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.platform.database.orm_db_setting import Base
from src.platform.types.column_types import MoneyNumeric, UtcDateTime


class EventModel(Base):
    __tablename__ = 'events'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)  # UUID7
    organizer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    total_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    available_tickets: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default='USD')
    base_price: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='draft')
    start_date: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    sales_start_date: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    sales_end_date: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    is_streaming: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            'available_tickets >= 0 AND available_tickets <= total_capacity',
            name='ck_events_available_tickets',
        ),
    )


class PricingTierModel(Base):
    __tablename__ = 'pricing_tiers'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('events.id'), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    base_price: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    total_tickets: Mapped[int] = mapped_column(Integer, nullable=False)
    available_tickets: Mapped[int] = mapped_column(Integer, nullable=False)
    sales_start_date: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    sales_end_date: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            'available_tickets >= 0 AND available_tickets <= total_tickets',
            name='ck_pricing_tiers_available_tickets',
        ),
    )


class EventSessionModel(Base):
    __tablename__ = 'event_sessions'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('events.id'), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    base_price_override: Mapped[Optional[Decimal]] = mapped_column(MoneyNumeric, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            'available_seats >= 0 AND available_seats <= capacity',
            name='ck_event_sessions_available_seats',
        ),
    )


class SeatModel(Base):
    __tablename__ = 'seats'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('events.id'), nullable=False, index=True
    )
    tier_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('pricing_tiers.id'), nullable=False, index=True
    )
    section: Mapped[str] = mapped_column(String(20), nullable=False)
    row: Mapped[str] = mapped_column(String(10), nullable=False)
    number: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='available')
    reservation_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    __table_args__ = (
        UniqueConstraint('event_id', 'section', 'row', 'number', name='uq_seat_position'),
    )
