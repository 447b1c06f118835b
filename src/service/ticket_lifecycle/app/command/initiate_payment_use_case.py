from decimal import Decimal
from typing import Any, Optional, Self
from uuid import UUID

import attrs
from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import (
    ConflictingStateError,
    ForbiddenError,
    GatewayFatalError,
    GatewayTransientError,
    NotFoundError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.dto.lifecycle_results import PaymentInitiation
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.interface.i_payment_gateway import IPaymentGatewayRegistry
from src.service.ticket_lifecycle.app.service.order_payment_service import OrderPaymentService
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.value_object.money import Money, to_cents


class InitiatePaymentUseCase:
    """
    Open a gateway payment for an order balance or a pending checkout

    The pending Payment is committed before the gateway is called, so the
    reference number exists even when the intent request fails; a failed
    request marks that payment failed. Returns the client payload the buyer's
    browser needs (Stripe client secret, PayPal approval link, Zim payment URL,
    offline instructions).
    """

    def __init__(
        self,
        *,
        uow: AbstractUnitOfWork,
        payments: OrderPaymentService,
        gateways: IPaymentGatewayRegistry,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow = uow
        self.payments = payments
        self.gateways = gateways
        self.clock = clock
        self.audit_trail = audit_trail
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        payments: OrderPaymentService = Depends(Provide[Container.order_payment_service]),
        gateways: IPaymentGatewayRegistry = Depends(Provide[Container.payment_gateways]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(
            uow=uow,
            payments=payments,
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
        order_id: Optional[UUID] = None,
        checkout_id: Optional[UUID] = None,
        amount: Optional[Decimal] = None,
    ) -> PaymentInitiation:
        if (order_id is None) == (checkout_id is None):
            raise ValidationError('Exactly one of order_id or checkout_id is required')

        with self.tracer.start_as_current_span(
            'use_case.initiate_payment',
            attributes={'user.id': str(user_id), 'payment.method': payment_method},
        ):
            gateway = self.gateways.for_method(payment_method)
            if order_id is not None:
                payment = await self._open_for_order(
                    user_id=user_id, order_id=order_id, method=payment_method, amount=amount
                )
            else:
                if checkout_id is None:
                    raise ValidationError('Exactly one of order_id or checkout_id is required')
                payment = await self._open_for_checkout(
                    user_id=user_id, checkout_id=checkout_id, method=payment_method
                )

            try:
                intent = await gateway.create_intent(
                    amount=Money(payment.amount, payment.currency),
                    reference=payment.reference_number,
                    user_id=user_id,
                    metadata={
                        key: str(value)
                        for key, value in (
                            ('order_id', payment.order_id),
                            ('checkout_id', payment.checkout_id),
                        )
                        if value is not None
                    },
                )
            except (GatewayTransientError, GatewayFatalError) as e:
                async with self.uow:
                    await self.payments.mark_failed(
                        self.uow, payment_id=payment.id, reason=e.message, now=self.clock.now()
                    )
                    await self.uow.commit()
                raise

            async with self.uow:
                current = await self.uow.payment_repo.get_by_id(
                    payment_id=payment.id, for_update=True
                )
                if current is None:
                    raise NotFoundError('Payment not found')
                metadata: dict[str, Any] = {**current.metadata}
                if intent.gateway_transaction_id:
                    metadata['intent_id'] = intent.gateway_transaction_id
                payment = await self.uow.payment_repo.update(
                    payment=attrs.evolve(current, metadata=metadata, updated_at=self.clock.now())
                )
                await self.uow.commit()

            Logger.base.info(
                f'💳 [PAYMENT] Initiated {payment.reference_number} via {payment.gateway}: '
                f'{payment.amount} {payment.currency}'
            )
            await self.audit_trail.record(
                AuditEntry(
                    action=AuditAction.PAYMENT_INITIATED,
                    resource_kind=ResourceKind.PAYMENT,
                    resource_id=payment.id,
                    actor_id=user_id,
                    after=snapshot(
                        payment, 'status', 'amount', 'currency', 'gateway', 'reference_number'
                    ),
                    metadata={'order_id': payment.order_id, 'checkout_id': payment.checkout_id},
                )
            )
            return PaymentInitiation(payment=payment, client_payload=intent.client_payload)

    async def _open_for_order(
        self, *, user_id: UUID, order_id: UUID, method: str, amount: Optional[Decimal]
    ) -> Payment:
        now = self.clock.now()
        async with self.uow:
            order = await self.uow.order_repo.get_by_id(order_id=order_id, for_update=True)
            if order is None:
                raise NotFoundError('Order not found')
            if order.user_id != user_id:
                raise ForbiddenError('Order belongs to another user')
            if order.status not in (OrderStatus.RESERVED, OrderStatus.PARTIALLY_PAID):
                raise ConflictingStateError(
                    f'Order is {order.status}, payments cannot be applied',
                    current_state=str(order.status),
                )
            if order.is_fully_paid:
                raise ConflictingStateError(
                    'Order is already fully paid', current_state=str(order.status)
                )
            requested = to_cents(amount) if amount is not None else order.balance_due
            if requested <= 0:
                raise ValidationError('amount must be greater than zero', field='amount')
            payment = await self.payments.open_payment(
                self.uow,
                user_id=user_id,
                payment_method=method,
                amount=Money(min(requested, order.balance_due), order.currency),
                now=now,
                order_id=order.id,
            )
            await self.uow.commit()
        return payment

    async def _open_for_checkout(self, *, user_id: UUID, checkout_id: UUID, method: str) -> Payment:
        now = self.clock.now()
        async with self.uow:
            checkout = await self.uow.checkout_repo.get_by_id(
                checkout_id=checkout_id, for_update=True
            )
            if checkout is None:
                raise NotFoundError('Checkout not found')
            if checkout.user_id != user_id:
                raise ForbiddenError('Checkout belongs to another user')
            checkout.ensure_completable(now)

            previous = await self.uow.payment_repo.find_pending_for_checkout(
                checkout_id=checkout.id
            )
            if previous is not None:
                await self.payments.mark_failed(
                    self.uow, payment_id=previous.id, reason='Superseded', now=now
                )
            payment = await self.payments.open_payment(
                self.uow,
                user_id=user_id,
                payment_method=method,
                amount=Money(checkout.total_amount, checkout.currency),
                now=now,
                checkout_id=checkout.id,
            )
            await self.uow.commit()
        return payment
