import io
from typing import List, Self
from uuid import UUID

import qrcode
from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from qrcode import constants

from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import (
    ConflictingStateError,
    ForbiddenError,
    NotFoundError,
)
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.inventory_snapshot import InventorySnapshot
from src.service.ticket_lifecycle.app.service.inventory_ledger import InventoryLedger
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.enum.ticket_format import CredentialFormat


QR_BOX_SIZE = 10
QR_BORDER = 4


async def _owned_ticket(uow: AbstractUnitOfWork, *, user_id: UUID, ticket_id: UUID) -> Ticket:
    ticket = await uow.ticket_repo.get_by_id(ticket_id=ticket_id)
    if ticket is None:
        raise NotFoundError('Ticket not found')
    if ticket.current_owner() != user_id:
        raise ForbiddenError('Ticket belongs to another user')
    return ticket


class GetTicketUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    @classmethod
    def depends(cls, uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> Self:
        return cls(uow=uow)

    @Logger.io
    async def execute(self, *, user_id: UUID, ticket_id: UUID) -> Ticket:
        async with self.uow:
            return await _owned_ticket(self.uow, user_id=user_id, ticket_id=ticket_id)


class ListUserTicketsUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    @classmethod
    def depends(cls, uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> Self:
        return cls(uow=uow)

    @Logger.io
    async def execute(self, *, user_id: UUID) -> List[Ticket]:
        """Tickets the user currently holds, transferred-in ones included."""
        async with self.uow:
            return await self.uow.ticket_repo.list_by_user(user_id=user_id)


class RenderTicketQrUseCase:
    """PNG of the owner's current QR payload; rotated credentials render the new one."""

    def __init__(self, *, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    @classmethod
    def depends(cls, uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> Self:
        return cls(uow=uow)

    @Logger.io
    async def execute(self, *, user_id: UUID, ticket_id: UUID) -> bytes:
        async with self.uow:
            ticket = await _owned_ticket(self.uow, user_id=user_id, ticket_id=ticket_id)
        if ticket.credential_format != CredentialFormat.QR_CODE or not ticket.qr_code_data:
            raise ConflictingStateError(
                'Ticket has no QR credential', current_state=str(ticket.credential_format)
            )
        if not ticket.status.is_live:
            raise ConflictingStateError(
                f'Ticket is {ticket.status}', current_state=str(ticket.status)
            )

        qr = qrcode.QRCode(
            version=None,
            error_correction=constants.ERROR_CORRECT_M,
            box_size=QR_BOX_SIZE,
            border=QR_BORDER,
        )
        qr.add_data(ticket.qr_code_data)
        qr.make(fit=True)
        image = qr.make_image(fill_color='black', back_color='white')

        buffer = io.BytesIO()
        image.save(buffer, format='PNG')
        return buffer.getvalue()


class GetInventoryUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork, ledger: InventoryLedger) -> None:
        self.uow = uow
        self.ledger = ledger

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        ledger: InventoryLedger = Depends(Provide[Container.inventory_ledger]),
    ) -> Self:
        return cls(uow=uow, ledger=ledger)

    @Logger.io
    async def execute(self, *, event_id: UUID) -> InventorySnapshot:
        async with self.uow:
            return await self.ledger.snapshot(self.uow, event_id=event_id)
