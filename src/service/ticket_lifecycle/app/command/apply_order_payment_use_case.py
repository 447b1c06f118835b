from decimal import Decimal
from typing import Any, Optional, Self
from uuid import UUID

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import (
    ConflictingStateError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.dto.lifecycle_results import AppliedPayment
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.service.order_payment_service import OrderPaymentService
from src.service.ticket_lifecycle.app.service.payment_flow import PaymentFlow
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentGateway
from src.service.ticket_lifecycle.domain.value_object.money import Money, to_cents


class ApplyOrderPaymentUseCase:
    """
    Record a (partial) payment against an order

    Offline methods (cash, bank transfer) have nothing to verify remotely, so
    only staff acting as the operator may record them. The verified amount is
    clamped to the balance due; a full balance confirms the order's reserved
    tickets and held reservations.
    """

    def __init__(
        self,
        *,
        uow: AbstractUnitOfWork,
        payments: OrderPaymentService,
        payment_flow: PaymentFlow,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow = uow
        self.payments = payments
        self.payment_flow = payment_flow
        self.clock = clock
        self.audit_trail = audit_trail
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        uow: AbstractUnitOfWork = Depends(get_unit_of_work),
        payments: OrderPaymentService = Depends(Provide[Container.order_payment_service]),
        payment_flow: PaymentFlow = Depends(Provide[Container.payment_flow]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(
            uow=uow,
            payments=payments,
            payment_flow=payment_flow,
            clock=clock,
            audit_trail=audit_trail,
        )

    @Logger.io
    async def execute(
        self,
        *,
        user_id: UUID,
        order_id: UUID,
        amount_paid: Optional[Decimal],
        payment_method: str,
        gateway_response: Optional[dict[str, Any]] = None,
        acting_as_operator: bool = False,
    ) -> AppliedPayment:
        with self.tracer.start_as_current_span(
            'use_case.apply_order_payment',
            attributes={
                'order.id': str(order_id),
                'payment.method': payment_method,
                'acting_as_operator': acting_as_operator,
            },
        ):
            payment = await self._open_payment(
                user_id=user_id,
                order_id=order_id,
                amount_paid=amount_paid,
                payment_method=payment_method,
                acting_as_operator=acting_as_operator,
            )

            payload = dict(gateway_response or {})
            payload['operator_confirmed'] = acting_as_operator
            payload.setdefault('payment_method', payment_method)
            if acting_as_operator:
                payload['recorded_by'] = str(user_id)
            verification = await self.payment_flow.verify(
                self.uow, payment=payment, verification_payload=payload
            )

            async def _apply(uow: AbstractUnitOfWork) -> AppliedPayment:
                return await self.payments.apply_verified(
                    uow,
                    order_id=order_id,
                    payment_id=payment.id,
                    verification=verification,
                    now=self.clock.now(),
                )

            applied = await self.payment_flow.apply_or_reconcile(
                self.uow, payment_id=payment.id, verification=verification, apply=_apply
            )
            await self._audit(user_id=user_id, payment_before=payment, applied=applied)
            return applied

    async def _open_payment(
        self,
        *,
        user_id: UUID,
        order_id: UUID,
        amount_paid: Optional[Decimal],
        payment_method: str,
        acting_as_operator: bool,
    ) -> Payment:
        offline = PaymentGateway.for_method(payment_method) == PaymentGateway.OTHER
        if offline and not acting_as_operator:
            raise ForbiddenError('Offline payments must be recorded by an operator')

        now = self.clock.now()
        async with self.uow:
            order = await self.uow.order_repo.get_by_id(order_id=order_id, for_update=True)
            if order is None:
                raise NotFoundError('Order not found')
            if order.user_id != user_id and not acting_as_operator:
                raise ForbiddenError('Order belongs to another user')
            if order.status not in (OrderStatus.RESERVED, OrderStatus.PARTIALLY_PAID) or (
                order.is_fully_paid
            ):
                message = (
                    'Order is already fully paid'
                    if order.is_fully_paid
                    else f'Order is {order.status}, payments cannot be applied'
                )
                raise ConflictingStateError(message, current_state=str(order.status))

            amount = to_cents(amount_paid) if amount_paid is not None else order.balance_due
            if amount <= 0:
                raise ValidationError('amount_paid must be greater than zero', field='amount_paid')
            payment = await self.payments.open_payment(
                self.uow,
                user_id=order.user_id,
                payment_method=payment_method,
                amount=Money(amount, order.currency),
                now=now,
                order_id=order.id,
                metadata={'recorded_by': str(user_id)} if acting_as_operator else None,
            )
            await self.uow.commit()
        return payment

    async def _audit(
        self, *, user_id: UUID, payment_before: Payment, applied: AppliedPayment
    ) -> None:
        order = applied.order
        entries = [
            AuditEntry(
                action=AuditAction.PAYMENT_COMPLETED,
                resource_kind=ResourceKind.PAYMENT,
                resource_id=applied.payment.id,
                actor_id=user_id,
                before=snapshot(payment_before, 'status', 'amount'),
                after=snapshot(applied.payment, 'status', 'amount', 'gateway_transaction_id'),
                metadata={'reference_number': applied.payment.reference_number},
            ),
            AuditEntry(
                action=(
                    AuditAction.ORDER_CONFIRMED
                    if order.status == OrderStatus.CONFIRMED
                    else AuditAction.ORDER_PARTIALLY_PAID
                ),
                resource_kind=ResourceKind.ORDER,
                resource_id=order.id,
                actor_id=user_id,
                before=snapshot(applied.order_before, 'status', 'amount_paid', 'balance_due'),
                after=snapshot(order, 'status', 'amount_paid', 'balance_due'),
                metadata={'applied': applied.applied, 'payment_id': applied.payment.id},
            ),
        ]
        entries.extend(
            AuditEntry(
                action=AuditAction.RESERVATION_CONFIRMED,
                resource_kind=ResourceKind.RESERVATION,
                resource_id=reservation.id,
                actor_id=user_id,
                after=snapshot(reservation, 'status', 'order_id', 'payment_id'),
            )
            for reservation in applied.confirmed_reservations
        )
        entries.extend(
            AuditEntry(
                action=AuditAction.TICKET_CONFIRMED,
                resource_kind=ResourceKind.TICKET,
                resource_id=ticket.id,
                actor_id=user_id,
                before={'status': 'reserved'},
                after=snapshot(ticket, 'status'),
            )
            for ticket in applied.confirmed_tickets
        )
        await self.audit_trail.record_all(entries)
