from typing import Optional, Self
from uuid import UUID

from fastapi import Depends

from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import ForbiddenError, NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.lifecycle_results import OrderDetail
from src.service.ticket_lifecycle.app.dto.page import Page
from src.service.ticket_lifecycle.domain.entity.checkout_entity import Checkout
from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus


class GetOrderUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    @classmethod
    def depends(cls, uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> Self:
        return cls(uow=uow)

    @Logger.io
    async def execute(
        self, *, user_id: UUID, order_id: UUID, acting_as_operator: bool = False
    ) -> OrderDetail:
        """Order with its tickets and payments, refund credits included."""
        async with self.uow:
            order = await self.uow.order_repo.get_by_id(order_id=order_id)
            if order is None:
                raise NotFoundError('Order not found')
            if order.user_id != user_id and not acting_as_operator:
                raise ForbiddenError('Order belongs to another user')
            tickets = await self.uow.ticket_repo.list_by_order(order_id=order_id)
            payments = await self.uow.payment_repo.list_by_order(order_id=order_id)
        return OrderDetail(order=order, tickets=tickets, payments=payments)


class ListOrdersUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    @classmethod
    def depends(cls, uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> Self:
        return cls(uow=uow)

    @Logger.io
    async def execute(
        self,
        *,
        user_id: UUID,
        status: Optional[OrderStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Order]:
        async with self.uow:
            orders, total = await self.uow.order_repo.list_by_user(
                user_id=user_id, status=status, page=page, limit=limit
            )
        return Page(items=orders, total=total, page=page, limit=limit)


class GetCheckoutUseCase:
    def __init__(self, *, uow: AbstractUnitOfWork) -> None:
        self.uow = uow

    @classmethod
    def depends(cls, uow: AbstractUnitOfWork = Depends(get_unit_of_work)) -> Self:
        return cls(uow=uow)

    @Logger.io
    async def execute(self, *, user_id: UUID, checkout_id: UUID) -> Checkout:
        async with self.uow:
            checkout = await self.uow.checkout_repo.get_by_id(checkout_id=checkout_id)
        if checkout is None:
            raise NotFoundError('Checkout not found')
        if checkout.user_id != user_id:
            raise ForbiddenError('Checkout belongs to another user')
        return checkout
