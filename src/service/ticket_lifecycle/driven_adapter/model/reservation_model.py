from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy import ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.platform.database.orm_db_setting import Base
from src.platform.types.column_types import JsonDocument, UtcDateTime


class ReservationModel(Base):
    __tablename__ = 'reservations'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    event_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey('events.id'), nullable=False)
    tier_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    session_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    seat_ids: Mapped[list] = mapped_column(JsonDocument, nullable=False, default=list)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='held')
    checkout_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    released_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    release_reason: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = (Index('ix_reservations_status_expires_at', 'status', 'expires_at'),)
