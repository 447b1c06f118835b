"""
Wiring for the repository-backed tests

``Lifecycle`` holds the services the way the DI container does, but with the
test clock, the scripted gateway and a per-test database. Use cases are built
on demand with a fresh unit of work each.
"""

from typing import Any, Callable, Optional

import attrs

from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.service.ticket_lifecycle.app.command.apply_order_payment_use_case import (
    ApplyOrderPaymentUseCase,
)
from src.service.ticket_lifecycle.app.command.confirm_ticket_payment_use_case import (
    ConfirmTicketPaymentUseCase,
)
from src.service.ticket_lifecycle.app.command.purchase_tickets_use_case import (
    PurchaseTicketsUseCase,
)
from src.service.ticket_lifecycle.app.command.release_expired_reservations_use_case import (
    ReleaseExpiredReservationsUseCase,
)
from src.service.ticket_lifecycle.app.command.ticket_refund_use_case import (
    ApproveRefundUseCase,
    RequestRefundUseCase,
)
from src.service.ticket_lifecycle.app.service.audit_trail import AuditTrail
from src.service.ticket_lifecycle.app.service.line_pricer import LinePricer
from src.service.ticket_lifecycle.app.service.order_payment_service import OrderPaymentService
from src.service.ticket_lifecycle.app.service.payment_flow import PaymentFlow
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.app.service.ticket_issuer import TicketIssuer
from src.service.ticket_lifecycle.domain.entity.event_entity import Event, PricingTier
from src.service.ticket_lifecycle.driven_adapter.payment_gateway.gateway_registry import (
    PaymentGatewayRegistry,
)
from test.service.ticket_lifecycle.lifecycle_factories import make_event, make_tier
from test.shared.lifecycle_fakes import FakeClock, ScriptedGateway


@attrs.define
class Lifecycle:
    uow_factory: Callable[[], AbstractUnitOfWork]
    clock: FakeClock
    audit_trail: AuditTrail
    gateway: ScriptedGateway
    gateways: PaymentGatewayRegistry
    reservations: ReservationManager
    pricer: LinePricer
    issuer: TicketIssuer
    payments: OrderPaymentService
    payment_flow: PaymentFlow

    def uow(self) -> AbstractUnitOfWork:
        return self.uow_factory()

    async def seed_event(
        self, *, tier_total: Optional[int] = 10, tier_price: str = '100.00', **kwargs: Any
    ) -> tuple[Event, Optional[PricingTier]]:
        event = make_event(now=self.clock.now(), **kwargs)
        tier = None
        async with self.uow() as uow:
            await uow.event_repo.add_event(event=event)
            if tier_total is not None:
                tier = make_tier(event=event, total=tier_total, base_price=tier_price)
                await uow.event_repo.add_tier(tier=tier)
            await uow.commit()
        return event, tier

    def purchase(self) -> PurchaseTicketsUseCase:
        return PurchaseTicketsUseCase(
            uow=self.uow(),
            reservations=self.reservations,
            pricer=self.pricer,
            issuer=self.issuer,
            clock=self.clock,
            audit_trail=self.audit_trail,
        )

    def apply_payment(self) -> ApplyOrderPaymentUseCase:
        return ApplyOrderPaymentUseCase(
            uow=self.uow(),
            payments=self.payments,
            payment_flow=self.payment_flow,
            clock=self.clock,
            audit_trail=self.audit_trail,
        )

    def confirm_ticket_payment(self) -> ConfirmTicketPaymentUseCase:
        return ConfirmTicketPaymentUseCase(uow=self.uow(), apply_payment=self.apply_payment())

    def release_expired(self) -> ReleaseExpiredReservationsUseCase:
        return ReleaseExpiredReservationsUseCase(
            uow_factory=self.uow_factory,
            reservations=self.reservations,
            clock=self.clock,
            audit_trail=self.audit_trail,
        )

    def request_refund(self) -> RequestRefundUseCase:
        return RequestRefundUseCase(
            uow=self.uow(), clock=self.clock, audit_trail=self.audit_trail
        )

    def approve_refund(self) -> ApproveRefundUseCase:
        return ApproveRefundUseCase(
            uow=self.uow(),
            gateways=self.gateways,
            ledger=self.reservations.ledger,
            clock=self.clock,
            audit_trail=self.audit_trail,
        )
