from typing import List, Self
from uuid import UUID

from fastapi import Depends

from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import ForbiddenError, NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_transfer_repo import TransferDirection
from src.service.ticket_lifecycle.domain.entity.transfer_entity import TicketTransfer


class TransferHistoryUseCase:
    """Every transfer of one ticket, for its current owner or anyone who was a party to one."""

    def __init__(self, *, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    @classmethod
    def depends(cls, uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> Self:
        return cls(uow=uow)

    @Logger.io
    async def execute(self, *, user_id: UUID, ticket_id: UUID) -> List[TicketTransfer]:
        async with self.uow:
            ticket = await self.uow.ticket_repo.get_by_id(ticket_id=ticket_id)
            if ticket is None:
                raise NotFoundError('Ticket not found')
            transfers = await self.uow.transfer_repo.list_by_ticket(ticket_id=ticket_id)

        parties = {ticket.current_owner()}
        for transfer in transfers:
            parties.update({transfer.from_user_id, transfer.to_user_id, transfer.accepted_by})
        if user_id not in parties:
            raise ForbiddenError('Ticket belongs to another user')
        return transfers


class PendingTransfersUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    @classmethod
    def depends(cls, uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> Self:
        return cls(uow=uow)

    @Logger.io
    async def execute(
        self, *, user_id: UUID, direction: TransferDirection = 'all'
    ) -> List[TicketTransfer]:
        async with self.uow:
            return await self.uow.transfer_repo.list_pending_for_user(
                user_id=user_id, direction=direction
            )
