from datetime import datetime
from typing import Optional
import uuid

from sqlalchemy import Boolean, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.platform.database.orm_db_setting import Base
from src.platform.types.column_types import JsonDocument, UtcDateTime


class AuditLogModel(Base):
    __tablename__ = 'audit_logs'

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    resource_kind: Mapped[str] = mapped_column(String(30), nullable=False)
    resource_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    before: Mapped[Optional[dict]] = mapped_column(JsonDocument, nullable=True)
    after: Mapped[Optional[dict]] = mapped_column(JsonDocument, nullable=True)
    log_metadata: Mapped[dict] = mapped_column('metadata', JsonDocument, nullable=False)
    suspicious: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False, index=True)

    __table_args__ = (Index('ix_audit_logs_resource', 'resource_kind', 'resource_id'),)
