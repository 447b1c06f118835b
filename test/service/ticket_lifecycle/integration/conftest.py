"""Integration fixtures: real repositories on an in-memory SQLite database"""

from datetime import timedelta
from decimal import Decimal
from typing import Callable

import pytest

from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.service.ticket_lifecycle.app.service.audit_trail import AuditTrail
from src.service.ticket_lifecycle.app.service.inventory_ledger import InventoryLedger
from src.service.ticket_lifecycle.app.service.line_pricer import LinePricer
from src.service.ticket_lifecycle.app.service.order_payment_service import OrderPaymentService
from src.service.ticket_lifecycle.app.service.payment_flow import PaymentFlow
from src.service.ticket_lifecycle.app.service.payment_reconciler import PaymentReconciler
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.app.service.ticket_issuer import TicketIssuer
from test.service.ticket_lifecycle.integration.lifecycle_harness import Lifecycle
from test.shared.lifecycle_fakes import FakeClock, ScriptedGateway, registry_with


@pytest.fixture
def lifecycle(
    uow_factory: Callable[[], AbstractUnitOfWork],
    clock: FakeClock,
    audit_trail: AuditTrail,
    gateway: ScriptedGateway,
) -> Lifecycle:
    gateways = registry_with(gateway)
    reservations = ReservationManager(ledger=InventoryLedger(), ttl=timedelta(minutes=15))
    payments = OrderPaymentService(reservations=reservations)
    reconciler = PaymentReconciler(
        uow_factory=uow_factory, gateways=gateways, clock=clock, audit_trail=audit_trail
    )
    return Lifecycle(
        uow_factory=uow_factory,
        clock=clock,
        audit_trail=audit_trail,
        gateway=gateway,
        gateways=gateways,
        reservations=reservations,
        pricer=LinePricer(service_fee_rate=Decimal('0.10')),
        issuer=TicketIssuer(),
        payments=payments,
        payment_flow=PaymentFlow(
            gateways=gateways,
            payments=payments,
            reconciler=reconciler,
            audit_trail=audit_trail,
            clock=clock,
        ),
    )
