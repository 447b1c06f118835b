from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from src.service.ticket_lifecycle.domain.entity.transfer_entity import TicketTransfer


class InitiateTransferRequest(BaseModel):
    ticket_id: UUID
    to_user_id: Optional[UUID] = None
    to_email: Optional[str] = None
    message: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode='after')
    def _recipient_required(self) -> 'InitiateTransferRequest':
        if self.to_user_id is None and not self.to_email:
            raise ValueError('Either to_user_id or to_email is required')
        return self


class AcceptTransferRequest(BaseModel):
    transfer_code: Optional[str] = None


class TransferResponse(BaseModel):
    id: UUID
    ticket_id: UUID
    from_user_id: UUID
    to_user_id: Optional[UUID] = None
    to_email: Optional[str] = None
    message: Optional[str] = None
    status: str
    requested_at: datetime
    expires_at: datetime
    accepted_by: Optional[UUID] = None
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    transfer_code: Optional[str] = None

    @classmethod
    def from_entity(
        cls, transfer: TicketTransfer, *, include_code: bool = False
    ) -> 'TransferResponse':
        """The code is shown to the sender once, when the transfer is created."""
        return cls(
            id=transfer.id,
            ticket_id=transfer.ticket_id,
            from_user_id=transfer.from_user_id,
            to_user_id=transfer.to_user_id,
            to_email=transfer.to_email,
            message=transfer.message,
            status=transfer.status.value,
            requested_at=transfer.requested_at,
            expires_at=transfer.expires_at,
            accepted_by=transfer.accepted_by,
            accepted_at=transfer.accepted_at,
            declined_at=transfer.declined_at,
            cancelled_at=transfer.cancelled_at,
            transfer_code=transfer.transfer_code if include_code else None,
        )
