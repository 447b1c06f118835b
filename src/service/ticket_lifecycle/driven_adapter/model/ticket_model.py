from datetime import datetime
from decimal import Decimal
from typing import Optional
import uuid

from sqlalchemy import Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.platform.database.orm_db_setting import Base
from src.platform.types.column_types import MoneyNumeric, UtcDateTime


class TicketModel(Base):
    __tablename__ = 'tickets'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    event_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    session_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    tier_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    seat_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    seat_label: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    purchaser_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    reservation_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    line_index: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_index: Mapped[int] = mapped_column(Integer, nullable=False)
    ticket_type: Mapped[str] = mapped_column(String(20), nullable=False)
    ticket_format: Mapped[str] = mapped_column(String(20), nullable=False)
    credential_format: Mapped[str] = mapped_column(String(20), nullable=False)
    qr_code_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    nfc_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rfid_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    barcode_data: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    validation_key: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    stream_access_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    service_fee: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(MoneyNumeric, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    valid_until: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    transfer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    used_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    validation_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    __table_args__ = (
        # One ticket per unit of an order line: re-running issuance cannot mint duplicates
        UniqueConstraint('order_id', 'line_index', 'unit_index', name='uq_ticket_order_unit'),
        Index('ix_tickets_qr_validation_key', 'validation_key'),
        Index('ix_tickets_barcode_data', 'barcode_data'),
    )
