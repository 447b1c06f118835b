from typing import List, Optional, Self
from uuid import UUID

from fastapi import Depends

from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.lifecycle_results import RefundStats
from src.service.ticket_lifecycle.app.dto.page import Page
from src.service.ticket_lifecycle.domain.entity.refund_entity import TicketRefund
from src.service.ticket_lifecycle.domain.enum.refund_status import RefundStatus


class RefundHistoryUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    @classmethod
    def depends(cls, uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> Self:
        return cls(uow=uow)

    @Logger.io
    async def execute(self, *, user_id: UUID, page: int = 1, limit: int = 20) -> Page[TicketRefund]:
        async with self.uow:
            refunds, total = await self.uow.refund_repo.list_by_user(
                user_id=user_id, page=page, limit=limit
            )
        return Page(items=refunds, total=total, page=page, limit=limit)


class PendingRefundsUseCase:
    """
    Refunds waiting for a decision, oldest first

    Organizers see the requests for their own events; admins see all of them.
    """

    def __init__(self, *, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    @classmethod
    def depends(cls, uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> Self:
        return cls(uow=uow)

    @Logger.io
    async def execute(
        self, *, moderator_id: UUID, is_admin: bool = False
    ) -> List[TicketRefund]:
        organizer_id: Optional[UUID] = None if is_admin else moderator_id
        async with self.uow:
            return await self.uow.refund_repo.list_pending(organizer_id=organizer_id)


class RefundStatsUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    @classmethod
    def depends(cls, uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> Self:
        return cls(uow=uow)

    @Logger.io
    async def execute(self, *, moderator_id: UUID, is_admin: bool = False) -> RefundStats:
        async with self.uow:
            counts, approved_total = await self.uow.refund_repo.stats(
                organizer_id=None if is_admin else moderator_id
            )
        return RefundStats(
            pending=counts.get(RefundStatus.PENDING, 0),
            processing=counts.get(RefundStatus.PROCESSING, 0),
            approved=counts.get(RefundStatus.APPROVED, 0),
            rejected=counts.get(RefundStatus.REJECTED, 0),
            approved_total=approved_total,
        )
