from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import attrs

from src.platform.exception.exceptions import (
    AlreadyUsedError,
    ConflictingStateError,
    ExpiredError,
    NotStartedError,
)
from src.service.ticket_lifecycle.domain.enum.ticket_format import (
    CredentialFormat,
    TicketFormat,
    TicketType,
)
from src.service.ticket_lifecycle.domain.enum.ticket_status import (
    TICKET_TRANSITIONS,
    TicketStatus,
)
from src.service.ticket_lifecycle.domain.enum.transition import ensure_transition
from src.service.ticket_lifecycle.domain.value_object.issued_credential import IssuedCredential


@attrs.define
class Ticket:
    id: UUID
    ticket_number: str
    event_id: UUID
    user_id: UUID
    purchaser_id: UUID
    order_id: UUID
    line_index: int
    unit_index: int
    ticket_type: TicketType
    ticket_format: TicketFormat
    credential_format: CredentialFormat
    unit_price: Decimal
    service_fee: Decimal
    total_price: Decimal
    currency: str
    valid_until: datetime
    created_at: datetime
    status: TicketStatus = TicketStatus.RESERVED
    session_id: Optional[UUID] = None
    tier_id: Optional[UUID] = None
    seat_id: Optional[UUID] = None
    seat_label: Optional[str] = None
    reservation_id: Optional[UUID] = None
    qr_code_data: Optional[str] = None
    nfc_data: Optional[str] = None
    rfid_data: Optional[str] = None
    barcode_data: Optional[str] = None
    validation_key: Optional[str] = None
    stream_access_token: Optional[str] = None
    transfer_count: int = 0
    used_at: Optional[datetime] = None
    validation_method: Optional[str] = None
    updated_at: Optional[datetime] = None

    def current_owner(self) -> UUID:
        """The purchaser until an accepted transfer moves ``user_id``."""
        return self.user_id

    @property
    def credential(self) -> Optional[IssuedCredential]:
        payload = {
            CredentialFormat.QR_CODE: self.qr_code_data,
            CredentialFormat.NFC: self.nfc_data,
            CredentialFormat.RFID: self.rfid_data,
            CredentialFormat.BARCODE: self.barcode_data,
        }[self.credential_format]
        if payload is None:
            return None
        return IssuedCredential(
            credential_format=self.credential_format,
            payload=payload,
            validation_key=self.validation_key,
        )

    def with_credential(self, credential: IssuedCredential, *, now: datetime) -> 'Ticket':
        field_name = {
            CredentialFormat.QR_CODE: 'qr_code_data',
            CredentialFormat.NFC: 'nfc_data',
            CredentialFormat.RFID: 'rfid_data',
            CredentialFormat.BARCODE: 'barcode_data',
        }[credential.credential_format]
        cleared = {
            'qr_code_data': None,
            'nfc_data': None,
            'rfid_data': None,
            'barcode_data': None,
        }
        cleared[field_name] = credential.payload
        return attrs.evolve(
            self,
            credential_format=credential.credential_format,
            validation_key=credential.validation_key,
            updated_at=now,
            **cleared,
        )

    def _move(self, target: TicketStatus, now: datetime) -> 'Ticket':
        ensure_transition(self.status, target, TICKET_TRANSITIONS, resource='Ticket')
        return attrs.evolve(self, status=target, updated_at=now)

    def confirm(self, *, now: datetime) -> 'Ticket':
        return self._move(TicketStatus.CONFIRMED, now)

    def cancel(self, *, now: datetime) -> 'Ticket':
        return self._move(TicketStatus.CANCELLED, now)

    def request_refund(self, *, now: datetime) -> 'Ticket':
        return self._move(TicketStatus.REFUND_PENDING, now)

    def mark_refunded(self, *, now: datetime) -> 'Ticket':
        return self._move(TicketStatus.REFUNDED, now)

    def restore_after_rejected_refund(self, *, now: datetime) -> 'Ticket':
        return self._move(TicketStatus.CONFIRMED, now)

    def change_owner(self, *, new_owner_id: UUID, now: datetime) -> 'Ticket':
        if self.status != TicketStatus.CONFIRMED:
            raise ConflictingStateError(
                f'Ticket is {self.status}, cannot change owner', current_state=str(self.status)
            )
        return attrs.evolve(
            self, user_id=new_owner_id, transfer_count=self.transfer_count + 1, updated_at=now
        )

    def ensure_admissible(
        self, *, event_start: datetime, event_end: datetime, now: datetime
    ) -> None:
        """Admission preconditions; the conditional UPDATE decides races."""
        if self.status == TicketStatus.USED:
            raise AlreadyUsedError('Ticket has already been used')
        if self.status != TicketStatus.CONFIRMED:
            raise ConflictingStateError(
                f'Ticket is {self.status}, not valid for entry', current_state=str(self.status)
            )
        if now < event_start:
            raise NotStartedError('Event has not started yet')
        if now > event_end or now > self.valid_until:
            raise ExpiredError('Ticket is no longer valid')
