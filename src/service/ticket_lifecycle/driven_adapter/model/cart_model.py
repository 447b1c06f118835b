from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.platform.database.orm_db_setting import Base
from src.platform.types.column_types import JsonDocument, UtcDateTime


class CartModel(Base):
    __tablename__ = 'carts'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='active')
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    items: Mapped[list['CartItemModel']] = relationship(
        'CartItemModel',
        cascade='all, delete-orphan',
        order_by='CartItemModel.added_at',
        lazy='selectin',
    )


class CartItemModel(Base):
    __tablename__ = 'cart_items'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    cart_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('carts.id', ondelete='CASCADE'), nullable=False, index=True
    )
    event_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    line: Mapped[dict] = mapped_column(JsonDocument, nullable=False)
    added_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
