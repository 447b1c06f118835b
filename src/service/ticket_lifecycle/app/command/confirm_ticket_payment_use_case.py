from typing import Any, Optional, Self
from uuid import UUID

from fastapi import Depends

from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import ForbiddenError, NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.command.apply_order_payment_use_case import (
    ApplyOrderPaymentUseCase,
)
from src.service.ticket_lifecycle.app.dto.lifecycle_results import AppliedPayment


class ConfirmTicketPaymentUseCase:
    """Pay the remaining balance of the order a reserved ticket belongs to."""

    def __init__(
        self, *, uow: AbstractUnitOfWork, apply_payment: ApplyOrderPaymentUseCase
    ) -> None:
        self.uow = uow
        self.apply_payment = apply_payment

    @classmethod
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        apply_payment: ApplyOrderPaymentUseCase = Depends(ApplyOrderPaymentUseCase.depends),
    ) -> Self:
        return cls(uow=uow, apply_payment=apply_payment)

    @Logger.io
    async def execute(
        self,
        *,
        user_id: UUID,
        ticket_id: UUID,
        payment_method: str,
        gateway_response: Optional[dict[str, Any]] = None,
        acting_as_operator: bool = False,
    ) -> AppliedPayment:
        async with self.uow:
            ticket = await self.uow.ticket_repo.get_by_id(ticket_id=ticket_id)
        if ticket is None:
            raise NotFoundError('Ticket not found')
        if ticket.purchaser_id != user_id and not acting_as_operator:
            raise ForbiddenError('Ticket belongs to another user')

        return await self.apply_payment.execute(
            user_id=user_id,
            order_id=ticket.order_id,
            amount_paid=None,
            payment_method=payment_method,
            gateway_response=gateway_response,
            acting_as_operator=acting_as_operator,
        )
