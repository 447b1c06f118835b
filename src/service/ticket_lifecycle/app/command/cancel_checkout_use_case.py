from typing import Self
from uuid import UUID

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import ForbiddenError, NotFoundError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.service.order_payment_service import OrderPaymentService
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.domain.entity.checkout_entity import Checkout
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind


class CancelCheckoutUseCase:
    """Cancel a pending checkout; its holds go back to inventory and the cart stays open."""

    def __init__(
        self,
        *,
        uow: AbstractUnitOfWork,
        reservations: ReservationManager,
        payments: OrderPaymentService,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow = uow
        self.reservations = reservations
        self.payments = payments
        self.clock = clock
        self.audit_trail = audit_trail

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        reservations: ReservationManager = Depends(Provide[Container.reservation_manager]),
        payments: OrderPaymentService = Depends(Provide[Container.order_payment_service]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(
            uow=uow,
            reservations=reservations,
            payments=payments,
            clock=clock,
            audit_trail=audit_trail,
        )

    @Logger.io
    async def execute(self, *, user_id: UUID, checkout_id: UUID) -> Checkout:
        now = self.clock.now()
        async with self.uow:
            checkout = await self.uow.checkout_repo.get_by_id(checkout_id=checkout_id)
            if checkout is None:
                raise NotFoundError('Checkout not found')
            if checkout.user_id != user_id:
                raise ForbiddenError('Checkout belongs to another user')

            released = await self.reservations.release_many(
                self.uow, reservation_ids=checkout.reservation_ids, reason='cancel', now=now
            )
            locked = await self.uow.checkout_repo.get_by_id(
                checkout_id=checkout_id, for_update=True
            )
            if locked is None:
                raise NotFoundError('Checkout not found')
            cancelled = locked.cancel(now=now)
            await self.uow.checkout_repo.update(checkout=cancelled)

            pending = await self.uow.payment_repo.find_pending_for_checkout(checkout_id=checkout_id)
            if pending is not None:
                await self.payments.mark_failed(
                    self.uow, payment_id=pending.id, reason='Checkout cancelled', now=now
                )
            await self.uow.commit()

        metrics.checkout_transitions.labels(status='cancelled').inc()
        Logger.base.info(
            f'🚫 [CHECKOUT] {checkout_id} cancelled, {len(released)} hold(s) released'
        )
        await self.audit_trail.record(
            AuditEntry(
                action=AuditAction.CHECKOUT_CANCELLED,
                resource_kind=ResourceKind.CHECKOUT,
                resource_id=checkout_id,
                actor_id=user_id,
                before=snapshot(locked, 'status'),
                after=snapshot(cancelled, 'status', 'cancelled_at'),
            )
        )
        await self.audit_trail.record_all(
            AuditEntry(
                action=AuditAction.RESERVATION_RELEASED,
                resource_kind=ResourceKind.RESERVATION,
                resource_id=r.id,
                actor_id=user_id,
                after=snapshot(r, 'status', 'release_reason'),
            )
            for r in released
        )
        return cancelled
