from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.platform.database.orm_db_setting import Base
from src.platform.types.column_types import UtcDateTime


class TicketTransferModel(Base):
    __tablename__ = 'ticket_transfers'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey('tickets.id'), nullable=False, index=True
    )
    from_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    to_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    to_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    transfer_code: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    requested_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    accepted_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    declined_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
