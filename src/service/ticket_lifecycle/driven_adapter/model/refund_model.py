from datetime import datetime
from decimal import Decimal
from typing import Optional
import uuid

from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.platform.database.orm_db_setting import Base
from src.platform.types.column_types import MoneyNumeric, UtcDateTime


class TicketRefundModel(Base):
    __tablename__ = 'ticket_refunds'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('tickets.id'), nullable=False, index=True
    )
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    original_amount: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    refund_amount: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    requested_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    rejected_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gateway_refund_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    refund_payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
