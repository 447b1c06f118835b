from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_ticket_repo import ITicketRepo
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.enum.ticket_format import (
    CredentialFormat,
    TicketFormat,
    TicketType,
)
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.driven_adapter.model.ticket_model import TicketModel
from src.service.ticket_lifecycle.driven_adapter.repo.session_bound_repo import SessionBoundRepo


_CREDENTIAL_COLUMNS = {
    CredentialFormat.QR_CODE: TicketModel.qr_code_data,
    CredentialFormat.NFC: TicketModel.nfc_data,
    CredentialFormat.RFID: TicketModel.rfid_data,
    CredentialFormat.BARCODE: TicketModel.barcode_data,
}


class TicketRepoImpl(SessionBoundRepo, ITicketRepo):
    @staticmethod
    def _to_entity(model: TicketModel) -> Ticket:
        return Ticket(
            id=model.id,
            ticket_number=model.ticket_number,
            event_id=model.event_id,
            session_id=model.session_id,
            tier_id=model.tier_id,
            seat_id=model.seat_id,
            seat_label=model.seat_label,
            user_id=model.user_id,
            purchaser_id=model.purchaser_id,
            order_id=model.order_id,
            reservation_id=model.reservation_id,
            line_index=model.line_index,
            unit_index=model.unit_index,
            ticket_type=TicketType(model.ticket_type),
            ticket_format=TicketFormat(model.ticket_format),
            credential_format=CredentialFormat(model.credential_format),
            qr_code_data=model.qr_code_data,
            nfc_data=model.nfc_data,
            rfid_data=model.rfid_data,
            barcode_data=model.barcode_data,
            validation_key=model.validation_key,
            stream_access_token=model.stream_access_token,
            unit_price=model.unit_price,
            service_fee=model.service_fee,
            total_price=model.total_price,
            currency=model.currency,
            status=TicketStatus(model.status),
            valid_until=model.valid_until,
            transfer_count=model.transfer_count,
            used_at=model.used_at,
            validation_method=model.validation_method,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _apply(model: TicketModel, ticket: Ticket) -> None:
        model.ticket_number = ticket.ticket_number
        model.event_id = ticket.event_id
        model.session_id = ticket.session_id
        model.tier_id = ticket.tier_id
        model.seat_id = ticket.seat_id
        model.seat_label = ticket.seat_label
        model.user_id = ticket.user_id
        model.purchaser_id = ticket.purchaser_id
        model.order_id = ticket.order_id
        model.reservation_id = ticket.reservation_id
        model.line_index = ticket.line_index
        model.unit_index = ticket.unit_index
        model.ticket_type = ticket.ticket_type.value
        model.ticket_format = ticket.ticket_format.value
        model.credential_format = ticket.credential_format.value
        model.qr_code_data = ticket.qr_code_data
        model.nfc_data = ticket.nfc_data
        model.rfid_data = ticket.rfid_data
        model.barcode_data = ticket.barcode_data
        model.validation_key = ticket.validation_key
        model.stream_access_token = ticket.stream_access_token
        model.unit_price = ticket.unit_price
        model.service_fee = ticket.service_fee
        model.total_price = ticket.total_price
        model.currency = ticket.currency
        model.status = ticket.status.value
        model.valid_until = ticket.valid_until
        model.transfer_count = ticket.transfer_count
        model.used_at = ticket.used_at
        model.validation_method = ticket.validation_method
        model.created_at = ticket.created_at
        model.updated_at = ticket.updated_at

    @Logger.io
    async def create_many(self, *, tickets: List[Ticket]) -> List[Ticket]:
        async with self._get_session() as session:
            for ticket in tickets:
                model = TicketModel(id=ticket.id)
                self._apply(model, ticket)
                session.add(model)
            await session.flush()
            return tickets

    @Logger.io
    async def get_by_id(self, *, ticket_id: UUID, for_update: bool = False) -> Optional[Ticket]:
        async with self._get_session() as session:
            model = await session.get(
                TicketModel, ticket_id, with_for_update=for_update or None, populate_existing=True
            )
            return self._to_entity(model) if model else None

    @Logger.io
    async def list_by_order(self, *, order_id: UUID, for_update: bool = False) -> List[Ticket]:
        async with self._get_session() as session:
            stmt = (
                select(TicketModel)
                .where(TicketModel.order_id == order_id)
                .order_by(TicketModel.line_index, TicketModel.unit_index)
                .execution_options(populate_existing=True)
            )
            if for_update:
                stmt = stmt.with_for_update()
            result = await session.execute(stmt)
            return [self._to_entity(m) for m in result.scalars().all()]

    @Logger.io
    async def list_by_order_line(self, *, order_id: UUID, line_index: int) -> List[Ticket]:
        async with self._get_session() as session:
            result = await session.execute(
                select(TicketModel)
                .where(TicketModel.order_id == order_id, TicketModel.line_index == line_index)
                .order_by(TicketModel.unit_index)
                .execution_options(populate_existing=True)
            )
            return [self._to_entity(m) for m in result.scalars().all()]

    @Logger.io
    async def list_by_user(self, *, user_id: UUID) -> List[Ticket]:
        async with self._get_session() as session:
            result = await session.execute(
                select(TicketModel)
                .where(TicketModel.user_id == user_id)
                .order_by(TicketModel.created_at.desc())
                .execution_options(populate_existing=True)
            )
            return [self._to_entity(m) for m in result.scalars().all()]

    @Logger.io
    async def find_by_credential(
        self, *, credential_format: CredentialFormat, payload: str
    ) -> Optional[Ticket]:
        column = _CREDENTIAL_COLUMNS[credential_format]
        async with self._get_session() as session:
            result = await session.execute(
                select(TicketModel)
                .where(column == payload)
                .execution_options(populate_existing=True)
            )
            model = result.scalars().first()
            return self._to_entity(model) if model else None

    @Logger.io
    async def ticket_number_exists(self, *, ticket_number: str) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                select(TicketModel.id).where(TicketModel.ticket_number == ticket_number)
            )
            return result.first() is not None

    @Logger.io
    async def update(self, *, ticket: Ticket) -> Ticket:
        async with self._get_session() as session:
            model = await session.get(TicketModel, ticket.id)
            if model is None:
                raise LookupError(f'Ticket {ticket.id} does not exist')
            self._apply(model, ticket)
            await session.flush()
            return ticket

    @Logger.io
    async def mark_used_if_confirmed(
        self, *, ticket_id: UUID, used_at: datetime, validation_method: str
    ) -> bool:
        async with self._get_session() as session:
            result = await session.execute(
                update(TicketModel)
                .where(
                    TicketModel.id == ticket_id,
                    TicketModel.status == TicketStatus.CONFIRMED.value,
                )
                .values(
                    status=TicketStatus.USED.value,
                    used_at=used_at,
                    updated_at=used_at,
                    validation_method=validation_method,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
