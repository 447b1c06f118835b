"""
https://python-dependency-injector.ets-labs.org/index.html
https://python-dependency-injector.ets-labs.org/examples/fastapi-sqlalchemy.html
"""

from datetime import timedelta

from dependency_injector import containers, providers

from src.platform.config.core_setting import Settings
from src.platform.database.orm_db_setting import Database
from src.platform.database.unit_of_work import SqlAlchemyUnitOfWork
from src.service.ticket_lifecycle.app.service.audit_trail import AuditTrail
from src.service.ticket_lifecycle.app.service.inventory_ledger import InventoryLedger
from src.service.ticket_lifecycle.app.service.line_pricer import LinePricer
from src.service.ticket_lifecycle.app.service.order_payment_service import OrderPaymentService
from src.service.ticket_lifecycle.app.service.payment_flow import PaymentFlow
from src.service.ticket_lifecycle.app.service.payment_reconciler import PaymentReconciler
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.app.service.ticket_issuer import TicketIssuer
from src.service.ticket_lifecycle.driven_adapter.clock.system_clock import SystemClock
from src.service.ticket_lifecycle.driven_adapter.payment_gateway.gateway_registry import (
    PaymentGatewayRegistry,
)
from src.service.ticket_lifecycle.driven_adapter.repo.audit_log_repo_impl import AuditLogRepoImpl
from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.jwt_auth import JwtAuth


class Container(containers.DeclarativeContainer):
    # Configuration
    config_service = providers.Singleton(Settings)

    # Database (uses AsyncEngineManager with settings from config_service)
    database = providers.Singleton(Database)

    clock = providers.Singleton(SystemClock)

    # Standalone units of work (sweeps, reconciliation) open their own session
    uow_factory = providers.Factory(
        SqlAlchemyUnitOfWork, session_factory=database.provided.session
    )

    # Audit trail writes in its own session, after the business commit
    audit_log_repo = providers.Singleton(
        AuditLogRepoImpl, session_factory=database.provided.session
    )
    audit_trail = providers.Singleton(AuditTrail, audit_log_repo=audit_log_repo, clock=clock)

    # Payment gateways
    payment_gateways = providers.Singleton(PaymentGatewayRegistry.from_settings, config_service)

    # Lifecycle services (stateless, share the caller's unit of work)
    inventory_ledger = providers.Singleton(InventoryLedger)
    reservation_manager = providers.Singleton(
        ReservationManager,
        ledger=inventory_ledger,
        ttl=providers.Factory(
            timedelta, minutes=config_service.provided.RESERVATION_TTL_MINUTES
        ),
    )
    line_pricer = providers.Singleton(
        LinePricer, service_fee_rate=config_service.provided.SERVICE_FEE_RATE
    )
    ticket_issuer = providers.Singleton(TicketIssuer)
    order_payment_service = providers.Singleton(
        OrderPaymentService, reservations=reservation_manager
    )
    payment_reconciler = providers.Singleton(
        PaymentReconciler,
        uow_factory=uow_factory.provider,
        gateways=payment_gateways,
        clock=clock,
        audit_trail=audit_trail,
    )
    payment_flow = providers.Singleton(
        PaymentFlow,
        gateways=payment_gateways,
        payments=order_payment_service,
        reconciler=payment_reconciler,
        audit_trail=audit_trail,
        clock=clock,
    )

    # Auth service
    jwt_auth = providers.Singleton(JwtAuth)


container = Container()


def setup() -> None:
    container.config_service()
    container.payment_gateways()


def cleanup() -> None:
    container.reset_singletons()
