from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from src.service.ticket_lifecycle.app.dto.inventory_snapshot import InventorySnapshot
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.enum.ticket_format import (
    CredentialFormat,
    TicketFormat,
    TicketType,
)


class PurchaseTicketsRequest(BaseModel):
    event_id: UUID
    quantity: int = Field(gt=0)
    ticket_type: TicketType = TicketType.GENERAL
    ticket_format: TicketFormat = TicketFormat.DIGITAL
    credential_format: CredentialFormat = CredentialFormat.QR_CODE
    tier_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    seat_numbers: List[str] = []

    model_config = {
        'json_schema_extra': {
            'example': {
                'event_id': '01936d8f-5e73-7c4e-a9c5-123456789abc',
                'ticket_type': 'vip',
                'ticket_format': 'digital',
                'quantity': 2,
                'seat_numbers': ['A-1-1', 'A-1-2'],
            }
        }
    }


class ConfirmTicketPaymentRequest(BaseModel):
    payment_method: str = Field(min_length=1)
    gateway_response: Optional[dict[str, Any]] = None


class ValidateTicketRequest(BaseModel):
    qr_code_data: Optional[str] = None
    nfc_data: Optional[str] = None
    rfid_data: Optional[str] = None
    barcode_data: Optional[str] = None
    ticket_id: Optional[UUID] = None


class TicketResponse(BaseModel):
    """Owner view; the validation key never leaves the server."""

    id: UUID
    ticket_number: str
    event_id: UUID
    order_id: UUID
    user_id: UUID
    status: str
    ticket_type: str
    ticket_format: str
    credential_format: str
    unit_price: Decimal
    service_fee: Decimal
    total_price: Decimal
    currency: str
    valid_until: datetime
    created_at: datetime
    tier_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    seat_label: Optional[str] = None
    qr_code_data: Optional[str] = None
    nfc_data: Optional[str] = None
    rfid_data: Optional[str] = None
    barcode_data: Optional[str] = None
    stream_access_token: Optional[str] = None
    transfer_count: int = 0
    used_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, ticket: Ticket) -> 'TicketResponse':
        return cls(
            id=ticket.id,
            ticket_number=ticket.ticket_number,
            event_id=ticket.event_id,
            order_id=ticket.order_id,
            user_id=ticket.user_id,
            status=ticket.status.value,
            ticket_type=ticket.ticket_type.value,
            ticket_format=ticket.ticket_format.value,
            credential_format=ticket.credential_format.value,
            unit_price=ticket.unit_price,
            service_fee=ticket.service_fee,
            total_price=ticket.total_price,
            currency=ticket.currency,
            valid_until=ticket.valid_until,
            created_at=ticket.created_at,
            tier_id=ticket.tier_id,
            session_id=ticket.session_id,
            seat_label=ticket.seat_label,
            qr_code_data=ticket.qr_code_data,
            nfc_data=ticket.nfc_data,
            rfid_data=ticket.rfid_data,
            barcode_data=ticket.barcode_data,
            stream_access_token=ticket.stream_access_token,
            transfer_count=ticket.transfer_count,
            used_at=ticket.used_at,
        )


class ValidationResponse(BaseModel):
    """Gate view: just enough to admit the holder."""

    valid: bool = True
    ticket_id: UUID
    ticket_number: str
    event_id: UUID
    ticket_type: str
    seat_label: Optional[str] = None
    validation_method: str
    used_at: datetime


class TicketCancellationResponse(BaseModel):
    ticket_id: UUID
    ticket_status: str
    order_id: UUID
    order_status: str
    order_total: Decimal


class CounterResponse(BaseModel):
    id: UUID
    name: str
    total: int
    available: int


class InventoryResponse(BaseModel):
    event_id: UUID
    total_capacity: int
    available_tickets: int
    tiers: List[CounterResponse] = []
    sessions: List[CounterResponse] = []

    @classmethod
    def from_snapshot(cls, snapshot: InventorySnapshot) -> 'InventoryResponse':
        return cls(
            event_id=snapshot.event_id,
            total_capacity=snapshot.total_capacity,
            available_tickets=snapshot.available_tickets,
            tiers=[
                CounterResponse(id=c.id, name=c.name, total=c.total, available=c.available)
                for c in snapshot.tiers
            ],
            sessions=[
                CounterResponse(id=c.id, name=c.name, total=c.total, available=c.available)
                for c in snapshot.sessions
            ],
        )
