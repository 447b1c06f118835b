from typing import Callable, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.dto.lifecycle_results import ReservationSweepResult
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.reservation_status import ReservationStatus


class ReleaseExpiredReservationsUseCase:
    """Sweep: held reservations past ``expires_at`` give their units back."""

    def __init__(
        self,
        *,
        uow_factory: Callable[[], AbstractUnitOfWork],
        reservations: ReservationManager,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow_factory = uow_factory
        self.reservations = reservations
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
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(
            uow_factory=uow_factory,
            reservations=reservations,
            clock=clock,
            audit_trail=audit_trail,
        )

    @Logger.io
    async def execute(self, *, batch_size: int | None = None) -> ReservationSweepResult:
        result = await self.reservations.sweep(
            uow_factory=self.uow_factory,
            now=self.clock.now(),
            batch_size=batch_size or settings.SWEEP_BATCH_SIZE,
        )
        entries = [
            AuditEntry(
                action=AuditAction.RESERVATION_RELEASED,
                resource_kind=ResourceKind.RESERVATION,
                resource_id=reservation.id,
                before={'status': str(ReservationStatus.HELD)},
                after=snapshot(reservation, 'status', 'release_reason', 'quantity'),
                metadata={'event_id': reservation.event_id},
            )
            for reservation in result.released
        ]
        entries.extend(
            AuditEntry(
                action=AuditAction.ORDER_CANCELLED,
                resource_kind=ResourceKind.ORDER,
                resource_id=order.id,
                after=snapshot(order, 'status', 'cancellation_reason'),
                metadata={'reason': 'reservation_expired'},
            )
            for order in result.cancelled_orders
        )
        await self.audit_trail.record_all(entries)
        return result
