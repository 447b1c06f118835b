from datetime import datetime
from decimal import Decimal
from typing import Optional
import uuid

from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.platform.database.orm_db_setting import Base
from src.platform.types.column_types import JsonDocument, MoneyNumeric, UtcDateTime


class OrderModel(Base):
    __tablename__ = 'orders'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    checkout_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, unique=True)
    total_amount: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    balance_due: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    refunded_amount: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    billing_info: Mapped[Optional[dict]] = mapped_column(JsonDocument, nullable=True)
    order_metadata: Mapped[dict] = mapped_column('metadata', JsonDocument, nullable=False)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
