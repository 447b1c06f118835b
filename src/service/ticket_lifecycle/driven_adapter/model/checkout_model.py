from datetime import datetime
from decimal import Decimal
from typing import Optional
import uuid

from sqlalchemy import Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.platform.database.orm_db_setting import Base
from src.platform.types.column_types import JsonDocument, MoneyNumeric, UtcDateTime


class CheckoutModel(Base):
    __tablename__ = 'checkouts'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    cart_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)
    billing_info: Mapped[Optional[dict]] = mapped_column(JsonDocument, nullable=True)
    lines: Mapped[list] = mapped_column(JsonDocument, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='pending')
    reservation_ids: Mapped[list] = mapped_column(JsonDocument, nullable=False, default=list)
    payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    __table_args__ = (Index('ix_checkouts_status_expires_at', 'status', 'expires_at'),)
