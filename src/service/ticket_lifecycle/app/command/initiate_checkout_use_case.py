from datetime import timedelta
from typing import Optional, Self
from uuid import UUID

import attrs
from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace
from uuid_utils.compat import uuid7

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import ExpiredError, NotFoundError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.dto.lifecycle_results import CheckoutInitiation
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.interface.i_payment_gateway import IPaymentGatewayRegistry
from src.service.ticket_lifecycle.app.service.line_pricer import LinePricer
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.domain.entity.checkout_entity import Checkout, CheckoutLine
from src.service.ticket_lifecycle.domain.entity.reservation_entity import Reservation
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.pricing_domain import single_currency
from src.service.ticket_lifecycle.domain.value_object.billing_info import BillingInfo


class InitiateCheckoutUseCase:
    """
    Freeze the caller's cart into a priced, time-limited checkout

    With CHECKOUT_HOLDS_INVENTORY on, every line is held through the
    reservation manager for the checkout's lifetime; otherwise capacity is
    only taken when the checkout completes.
    """

    def __init__(
        self,
        *,
        uow: AbstractUnitOfWork,
        reservations: ReservationManager,
        pricer: LinePricer,
        gateways: IPaymentGatewayRegistry,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow = uow
        self.reservations = reservations
        self.pricer = pricer
        self.gateways = gateways
        self.clock = clock
        self.audit_trail = audit_trail
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        reservations: ReservationManager = Depends(Provide[Container.reservation_manager]),
        pricer: LinePricer = Depends(Provide[Container.line_pricer]),
        gateways: IPaymentGatewayRegistry = Depends(Provide[Container.payment_gateways]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(
            uow=uow,
            reservations=reservations,
            pricer=pricer,
            gateways=gateways,
            clock=clock,
            audit_trail=audit_trail,
        )

    @Logger.io
    async def execute(
        self,
        *,
        user_id: UUID,
        payment_method: str,
        billing_info: Optional[BillingInfo] = None,
    ) -> CheckoutInitiation:
        with self.tracer.start_as_current_span(
            'use_case.initiate_checkout',
            attributes={'user.id': str(user_id), 'payment.method': payment_method},
        ):
            now = self.clock.now()
            gateway = self.gateways.for_method(payment_method)
            ttl = timedelta(minutes=settings.CHECKOUT_TTL_MINUTES)

            reservations: list[Reservation] = []
            async with self.uow:
                cart = await self.uow.cart_repo.get_active_for_user(
                    user_id=user_id, for_update=True
                )
                if cart is None:
                    raise NotFoundError('Cart not found')
                if cart.is_empty:
                    raise ValidationError('Cart is empty', field='items')
                if cart.is_expired(now):
                    raise ExpiredError('Cart has expired')

                lines: list[CheckoutLine] = []
                for item in cart.items:
                    event = await self.uow.event_repo.get_by_id(event_id=item.event_id)
                    if event is None:
                        raise NotFoundError('Event not found')
                    await self.reservations.ensure_line_on_sale(
                        self.uow, event=event, line=item.line, now=now
                    )
                    quote = await self.pricer.quote(
                        self.uow, line=item.line, event=event, gateway=gateway
                    )
                    lines.append(CheckoutLine(line=item.line, quote=quote))
                currency = single_currency(cl.quote.currency for cl in lines)

                checkout = Checkout.initiate(
                    id=uuid7(),
                    user_id=user_id,
                    cart_id=cart.id,
                    payment_method=payment_method,
                    billing_info=billing_info,
                    lines=lines,
                    currency=currency,
                    now=now,
                    ttl=ttl,
                )
                if settings.CHECKOUT_HOLDS_INVENTORY:
                    reservations = await self.reservations.hold(
                        self.uow,
                        user_id=user_id,
                        lines=[cl.line for cl in lines],
                        now=now,
                        ttl=ttl,
                        checkout_id=checkout.id,
                    )
                    checkout = attrs.evolve(
                        checkout, reservation_ids=[r.id for r in reservations]
                    )
                await self.uow.checkout_repo.create(checkout=checkout)
                await self.uow.commit()

            metrics.checkout_transitions.labels(status='pending').inc()
            Logger.base.info(
                f'🧾 [CHECKOUT] {checkout.id} initiated for user {user_id}: '
                f'{checkout.total_amount} {checkout.currency}, {len(reservations)} hold(s)'
            )
            await self.audit_trail.record(
                AuditEntry(
                    action=AuditAction.CHECKOUT_INITIATED,
                    resource_kind=ResourceKind.CHECKOUT,
                    resource_id=checkout.id,
                    actor_id=user_id,
                    after=snapshot(
                        checkout, 'status', 'total_amount', 'currency', 'expires_at'
                    ),
                    metadata={'payment_method': payment_method, 'cart_id': cart.id},
                )
            )
            await self.audit_trail.record_all(
                AuditEntry(
                    action=AuditAction.RESERVATION_HELD,
                    resource_kind=ResourceKind.RESERVATION,
                    resource_id=r.id,
                    actor_id=user_id,
                    after=snapshot(r, 'status', 'event_id', 'quantity', 'expires_at'),
                    metadata={'checkout_id': checkout.id},
                )
                for r in reservations
            )
            return CheckoutInitiation(checkout=checkout, reservations=reservations)
