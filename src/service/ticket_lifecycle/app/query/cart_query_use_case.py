from decimal import Decimal
from typing import Self
from uuid import UUID

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.lifecycle_results import CartView
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.service.line_pricer import LinePricer


class GetCartUseCase:
    """
    The caller's active cart with a live price preview

    Prices are quoted from the current catalogue every time; nothing is frozen
    until checkout initiation. An expired cart reads as empty.
    """

    def __init__(self, *, uow: AbstractUnitOfWork, pricer: LinePricer, clock: IClock) -> None:
        self.uow = uow
        self.pricer = pricer
        self.clock = clock

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        pricer: LinePricer = Depends(Provide[Container.line_pricer]),
        clock: IClock = Depends(Provide[Container.clock]),
    ) -> Self:
        return cls(uow=uow, pricer=pricer, clock=clock)

    @Logger.io
    async def execute(self, *, user_id: UUID) -> CartView:
        async with self.uow:
            cart = await self.uow.cart_repo.get_active_for_user(user_id=user_id)
            if cart is None or cart.is_expired(self.clock.now()):
                return CartView(cart=None)
            quotes = [await self.pricer.quote(self.uow, line=item.line) for item in cart.items]

        total = sum((q.total.amount for q in quotes), Decimal('0.00'))
        return CartView(cart=cart, quotes=quotes, total=total, currency=cart.currency)
