"""
Unit of Work - one database session and transaction shared by all repositories

Architecture:
- UoW owns the session lifecycle and commit/rollback
- Repositories receive the shared session from the UoW
- Use cases coordinate repositories through the UoW; leaving the context
  without commit() rolls everything back
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, AsyncContextManager, Callable

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.platform.database.orm_db_setting import get_async_session


if TYPE_CHECKING:
    from src.service.ticket_lifecycle.app.interface.i_cart_repo import ICartRepo
    from src.service.ticket_lifecycle.app.interface.i_checkout_repo import ICheckoutRepo
    from src.service.ticket_lifecycle.app.interface.i_event_repo import IEventRepo
    from src.service.ticket_lifecycle.app.interface.i_inventory_repo import IInventoryRepo
    from src.service.ticket_lifecycle.app.interface.i_order_repo import IOrderRepo
    from src.service.ticket_lifecycle.app.interface.i_payment_repo import IPaymentRepo
    from src.service.ticket_lifecycle.app.interface.i_refund_repo import IRefundRepo
    from src.service.ticket_lifecycle.app.interface.i_reservation_repo import IReservationRepo
    from src.service.ticket_lifecycle.app.interface.i_ticket_repo import ITicketRepo
    from src.service.ticket_lifecycle.app.interface.i_transfer_repo import ITransferRepo


class AbstractUnitOfWork(abc.ABC):
    """
    Abstract Unit of Work for the ticket lifecycle

    Usage:
        async with uow:
            order = await uow.order_repo.get_by_id(order_id=..., for_update=True)
            await uow.order_repo.update(order=...)
            await uow.commit()
    """

    event_repo: IEventRepo
    inventory_repo: IInventoryRepo
    reservation_repo: IReservationRepo
    cart_repo: ICartRepo
    checkout_repo: ICheckoutRepo
    order_repo: IOrderRepo
    payment_repo: IPaymentRepo
    ticket_repo: ITicketRepo
    transfer_repo: ITransferRepo
    refund_repo: IRefundRepo

    async def __aenter__(self) -> AbstractUnitOfWork:
        return self

    async def __aexit__(self, *args):
        await self.rollback()

    async def commit(self):
        """Commit the transaction"""
        await self._commit()

    @abc.abstractmethod
    async def _commit(self) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """
    Request mode: wraps the request-scoped session from ``get_async_session``.
    Standalone mode (sweeps, reconciler): opens a fresh session from
    ``session_factory`` on enter and closes it on exit.
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        *,
        session_factory: Callable[[], AsyncContextManager[AsyncSession]] | None = None,
    ):
        if session is None and session_factory is None:
            raise ValueError('session or session_factory is required')
        self.session = session  # type: ignore[assignment]
        self._session_factory = session_factory
        self._session_cm: AsyncContextManager[AsyncSession] | None = None

    async def __aenter__(self):
        if self._session_factory is not None and self._session_cm is None:
            self._session_cm = self._session_factory()
            self.session = await self._session_cm.__aenter__()

        from src.service.ticket_lifecycle.driven_adapter.repo.cart_repo_impl import CartRepoImpl
        from src.service.ticket_lifecycle.driven_adapter.repo.checkout_repo_impl import (
            CheckoutRepoImpl,
        )
        from src.service.ticket_lifecycle.driven_adapter.repo.event_repo_impl import EventRepoImpl
        from src.service.ticket_lifecycle.driven_adapter.repo.inventory_repo_impl import (
            InventoryRepoImpl,
        )
        from src.service.ticket_lifecycle.driven_adapter.repo.order_repo_impl import OrderRepoImpl
        from src.service.ticket_lifecycle.driven_adapter.repo.payment_repo_impl import (
            PaymentRepoImpl,
        )
        from src.service.ticket_lifecycle.driven_adapter.repo.refund_repo_impl import (
            RefundRepoImpl,
        )
        from src.service.ticket_lifecycle.driven_adapter.repo.reservation_repo_impl import (
            ReservationRepoImpl,
        )
        from src.service.ticket_lifecycle.driven_adapter.repo.ticket_repo_impl import (
            TicketRepoImpl,
        )
        from src.service.ticket_lifecycle.driven_adapter.repo.transfer_repo_impl import (
            TransferRepoImpl,
        )

        # Every repository shares this UoW's session
        self.event_repo = EventRepoImpl(session=self.session)
        self.inventory_repo = InventoryRepoImpl(session=self.session)
        self.reservation_repo = ReservationRepoImpl(session=self.session)
        self.cart_repo = CartRepoImpl(session=self.session)
        self.checkout_repo = CheckoutRepoImpl(session=self.session)
        self.order_repo = OrderRepoImpl(session=self.session)
        self.payment_repo = PaymentRepoImpl(session=self.session)
        self.ticket_repo = TicketRepoImpl(session=self.session)
        self.transfer_repo = TransferRepoImpl(session=self.session)
        self.refund_repo = RefundRepoImpl(session=self.session)

        return await super().__aenter__()

    async def __aexit__(self, *args):
        try:
            await super().__aexit__(*args)
        finally:
            if self._session_cm is not None:
                session_cm, self._session_cm = self._session_cm, None
                await session_cm.__aexit__(*args)

    async def _commit(self):
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


def get_unit_of_work(
    session: AsyncSession = Depends(get_async_session),
) -> AbstractUnitOfWork:
    """
    FastAPI dependency for Unit of Work

    Usage:
        async def cancel_order(uow: AbstractUnitOfWork = Depends(get_unit_of_work)):
            async with uow:
                ...
                await uow.commit()
    """
    return SqlAlchemyUnitOfWork(session)
