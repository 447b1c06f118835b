from typing import Callable, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.service.order_payment_service import OrderPaymentService
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.domain.entity.checkout_entity import Checkout
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.checkout_status import CheckoutStatus


class ExpireCheckoutsUseCase:
    """
    Sweep: pending checkouts past ``expires_at`` become expired

    Each checkout gets its own transaction; one that completed or was
    cancelled since the scan is skipped.
    """

    def __init__(
        self,
        *,
        uow_factory: Callable[[], AbstractUnitOfWork],
        reservations: ReservationManager,
        payments: OrderPaymentService,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow_factory = uow_factory
        self.reservations = reservations
        self.payments = payments
        self.clock = clock
        self.audit_trail = audit_trail

    @classmethod
    @inject
    def depends(
        cls,
        uow_factory: Callable[[], AbstractUnitOfWork] = Depends(
            Provide[Container.uow_factory.provider]
        ),
        reservations: ReservationManager = Depends(Provide[Container.reservation_manager]),
        payments: OrderPaymentService = Depends(Provide[Container.order_payment_service]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(
            uow_factory=uow_factory,
            reservations=reservations,
            payments=payments,
            clock=clock,
            audit_trail=audit_trail,
        )

    @Logger.io
    async def execute(self, *, batch_size: int | None = None) -> list[Checkout]:
        now = self.clock.now()
        async with self.uow_factory() as uow:
            candidates = await uow.checkout_repo.find_expired_pending(
                now=now, limit=batch_size or settings.SWEEP_BATCH_SIZE
            )

        expired: list[Checkout] = []
        for candidate in candidates:
            async with self.uow_factory() as uow:
                await self.reservations.release_many(
                    uow,
                    reservation_ids=candidate.reservation_ids,
                    reason='checkout_expired',
                    now=now,
                )
                checkout = await uow.checkout_repo.get_by_id(
                    checkout_id=candidate.id, for_update=True
                )
                if (
                    checkout is None
                    or checkout.status != CheckoutStatus.PENDING
                    or not checkout.is_expired(now)
                ):
                    continue
                updated = checkout.expire(now=now)
                await uow.checkout_repo.update(checkout=updated)
                pending = await uow.payment_repo.find_pending_for_checkout(checkout_id=checkout.id)
                if pending is not None:
                    await self.payments.mark_failed(
                        uow, payment_id=pending.id, reason='Checkout expired', now=now
                    )
                await uow.commit()
            expired.append(updated)

        metrics.record_sweep(sweep='checkouts', processed=len(expired))
        if expired:
            Logger.base.info(f'🧹 [SWEEP] Expired {len(expired)} checkout(s)')
        await self.audit_trail.record_all(
            AuditEntry(
                action=AuditAction.CHECKOUT_EXPIRED,
                resource_kind=ResourceKind.CHECKOUT,
                resource_id=checkout.id,
                before={'status': str(CheckoutStatus.PENDING)},
                after=snapshot(checkout, 'status', 'expires_at'),
            )
            for checkout in expired
        )
        return expired
