from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Self
from uuid import UUID

import attrs
from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace
from uuid_utils.compat import uuid7

from src.platform.config.di import Container
from src.platform.database.unit_of_work import AbstractUnitOfWork, get_unit_of_work
from src.platform.exception.exceptions import (
    ConflictingStateError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.dto.lifecycle_results import CheckoutCompletion
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.service.order_payment_service import OrderPaymentService
from src.service.ticket_lifecycle.app.service.payment_flow import PaymentFlow
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.app.service.ticket_issuer import TicketIssuer
from src.service.ticket_lifecycle.domain.entity.order_entity import Order
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.entity.ticket_entity import Ticket
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.cart_status import CartStatus
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.value_object.gateway_result import VerificationResult
from src.service.ticket_lifecycle.domain.value_object.money import Money, to_cents


class CompleteCheckoutUseCase:
    """
    Turn a pending checkout into an order with tickets

    Flow:
    1. First transaction: lock the checkout, check it is pending and unexpired,
       open (or reuse) a pending Payment
    2. Verify the payment with the gateway, no transaction open
    3. Second transaction: re-check the checkout, confirm its reservations
       (holding them first when checkouts do not hold inventory), create the
       order, issue tickets, complete payment, checkout and cart

    A failure in step 3 after a successful verification refunds the payment
    through the reconciler.
    """

    def __init__(
        self,
        *,
        uow: AbstractUnitOfWork,
        reservations: ReservationManager,
        issuer: TicketIssuer,
        payments: OrderPaymentService,
        payment_flow: PaymentFlow,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow = uow
        self.reservations = reservations
        self.issuer = issuer
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
        reservations: ReservationManager = Depends(Provide[Container.reservation_manager]),
        issuer: TicketIssuer = Depends(Provide[Container.ticket_issuer]),
        payments: OrderPaymentService = Depends(Provide[Container.order_payment_service]),
        payment_flow: PaymentFlow = Depends(Provide[Container.payment_flow]),
        clock: IClock = Depends(Provide[Container.clock]),
        audit_trail: IAuditTrail = Depends(Provide[Container.audit_trail]),
    ) -> Self:
        return cls(
            uow=uow,
            reservations=reservations,
            issuer=issuer,
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
        checkout_id: UUID,
        payment_intent_id: Optional[str] = None,
        stripe_token: Optional[str] = None,
        payment_method: Optional[str] = None,
        amount_paid: Optional[Decimal] = None,
        verification_payload: Optional[dict[str, Any]] = None,
    ) -> CheckoutCompletion:
        with self.tracer.start_as_current_span(
            'use_case.complete_checkout',
            attributes={'user.id': str(user_id), 'checkout.id': str(checkout_id)},
        ):
            payment = await self._open_payment(
                user_id=user_id,
                checkout_id=checkout_id,
                payment_method=payment_method,
                amount_paid=amount_paid,
            )

            payload = dict(verification_payload or {})
            if payment_intent_id:
                payload['payment_intent_id'] = payment_intent_id
            if stripe_token:
                payload['stripe_token'] = stripe_token
            verification = await self.payment_flow.verify(
                self.uow, payment=payment, verification_payload=payload
            )

            async def _apply(uow: AbstractUnitOfWork) -> CheckoutCompletion:
                return await self._complete(
                    uow,
                    checkout_id=checkout_id,
                    payment_id=payment.id,
                    verification=verification,
                    now=self.clock.now(),
                )

            result = await self.payment_flow.apply_or_reconcile(
                self.uow, payment_id=payment.id, verification=verification, apply=_apply
            )

            metrics.checkout_transitions.labels(status='completed').inc()
            Logger.base.info(
                f'✅ [CHECKOUT] {checkout_id} completed -> order {result.order.id} '
                f'{result.order.status}, {len(result.tickets)} ticket(s)'
            )
            await self._audit(user_id=user_id, result=result)
            return result

    async def _open_payment(
        self,
        *,
        user_id: UUID,
        checkout_id: UUID,
        payment_method: Optional[str],
        amount_paid: Optional[Decimal],
    ) -> Payment:
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

            amount = to_cents(amount_paid) if amount_paid is not None else checkout.total_amount
            if amount <= 0:
                raise ValidationError('amount_paid must be greater than zero', field='amount_paid')
            method = payment_method or checkout.payment_method

            payment = await self.uow.payment_repo.find_pending_for_checkout(checkout_id=checkout.id)
            if payment is not None and (
                payment.payment_method != method or payment.amount != amount
            ):
                await self.payments.mark_failed(
                    self.uow, payment_id=payment.id, reason='Superseded', now=now
                )
                payment = None
            if payment is None:
                payment = await self.payments.open_payment(
                    self.uow,
                    user_id=user_id,
                    payment_method=method,
                    amount=Money(amount, checkout.currency),
                    now=now,
                    checkout_id=checkout.id,
                )
            await self.uow.commit()
        return payment

    async def _complete(
        self,
        uow: AbstractUnitOfWork,
        *,
        checkout_id: UUID,
        payment_id: UUID,
        verification: VerificationResult,
        now: datetime,
    ) -> CheckoutCompletion:
        snapshot_checkout = await uow.checkout_repo.get_by_id(checkout_id=checkout_id)
        if snapshot_checkout is None:
            raise NotFoundError('Checkout not found')
        lines = snapshot_checkout.lines

        # Lock order: events, reservations, checkout, order, tickets, payment
        events = await self.reservations.lock_events(
            uow, event_ids=[cl.line.event_id for cl in lines]
        )
        reservation_ids = list(snapshot_checkout.reservation_ids)
        if not reservation_ids:
            held = await self.reservations.hold(
                uow,
                user_id=snapshot_checkout.user_id,
                lines=[cl.line for cl in lines],
                now=now,
                checkout_id=checkout_id,
            )
            reservation_ids = [r.id for r in held]

        checkout = await uow.checkout_repo.get_by_id(checkout_id=checkout_id, for_update=True)
        if checkout is None:
            raise NotFoundError('Checkout not found')
        checkout.ensure_completable(now)

        payment = await uow.payment_repo.get_by_id(payment_id=payment_id, for_update=True)
        if payment is None:
            raise NotFoundError('Payment not found')
        if payment.status != PaymentStatus.PENDING:
            raise ConflictingStateError(
                f'Payment is {payment.status}', current_state=str(payment.status)
            )
        verified = to_cents(
            verification.amount if verification.amount is not None else payment.amount
        )

        order = Order.open(
            id=uuid7(),
            user_id=checkout.user_id,
            total_amount=checkout.total_amount,
            amount_paid=verified,
            currency=checkout.currency,
            now=now,
            checkout_id=checkout.id,
            billing_info=checkout.billing_info,
            metadata={
                'reservation_ids': [str(rid) for rid in reservation_ids],
                'payment_method': payment.payment_method,
            },
        )
        if order.amount_paid <= 0:
            raise ValidationError('amount_paid must be greater than zero', field='amount_paid')
        await uow.order_repo.create(order=order)

        confirmed = await self.reservations.confirm(
            uow,
            reservation_ids=reservation_ids,
            user_id=checkout.user_id,
            payment_id=payment.id,
            now=now,
            order_id=order.id,
        )
        status = TicketStatus.RESERVED
        if order.status == OrderStatus.CONFIRMED:
            status = TicketStatus.CONFIRMED
        tickets: list[Ticket] = []
        for index, (cl, reservation_id) in enumerate(zip(lines, reservation_ids)):
            seats = await uow.event_repo.get_seats(seat_ids=list(cl.line.seat_ids))
            tickets.extend(
                await self.issuer.issue(
                    uow,
                    order=order,
                    line_index=index,
                    line=cl.line,
                    quote=cl.quote,
                    event=events[cl.line.event_id],
                    status=status,
                    now=now,
                    reservation_id=reservation_id,
                    seats=seats,
                )
            )

        completed_payment = payment.complete(
            transaction_id=verification.transaction_id,
            gateway_response=verification.raw_response,
            order_id=order.id,
            now=now,
        )
        completed_payment = attrs.evolve(completed_payment, amount=order.amount_paid)
        if order.amount_paid < verified:
            completed_payment = completed_payment.flag_for_review(
                reason=f'Overpayment of {verified - order.amount_paid} {order.currency}', now=now
            )
        await uow.payment_repo.update(payment=completed_payment)

        if checkout.cart_id is not None:
            cart = await uow.cart_repo.get_by_id(cart_id=checkout.cart_id)
            if cart is not None and cart.status == CartStatus.ACTIVE:
                await uow.cart_repo.save(cart=cart.complete(now=now))

        completed_checkout = checkout.complete(order_id=order.id, payment_id=payment.id, now=now)
        await uow.checkout_repo.update(checkout=completed_checkout)
        return CheckoutCompletion(
            checkout=completed_checkout,
            order=order,
            payment=completed_payment,
            tickets=tickets,
            checkout_before=checkout,
            payment_before=payment,
            reservations=confirmed,
        )

    async def _audit(self, *, user_id: UUID, result: CheckoutCompletion) -> None:
        entries = [
            AuditEntry(
                action=AuditAction.CHECKOUT_COMPLETED,
                resource_kind=ResourceKind.CHECKOUT,
                resource_id=result.checkout.id,
                actor_id=user_id,
                before=snapshot(result.checkout_before, 'status'),
                after=snapshot(result.checkout, 'status', 'order_id', 'payment_id'),
            ),
            AuditEntry(
                action=(
                    AuditAction.ORDER_CONFIRMED
                    if result.order.status == OrderStatus.CONFIRMED
                    else AuditAction.ORDER_PARTIALLY_PAID
                ),
                resource_kind=ResourceKind.ORDER,
                resource_id=result.order.id,
                actor_id=user_id,
                after=snapshot(
                    result.order, 'status', 'total_amount', 'amount_paid', 'balance_due'
                ),
                metadata={'checkout_id': result.checkout.id},
            ),
            AuditEntry(
                action=AuditAction.PAYMENT_COMPLETED,
                resource_kind=ResourceKind.PAYMENT,
                resource_id=result.payment.id,
                actor_id=user_id,
                before=snapshot(result.payment_before, 'status', 'amount'),
                after=snapshot(result.payment, 'status', 'amount', 'gateway_transaction_id'),
                metadata={'reference_number': result.payment.reference_number},
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
            for reservation in result.reservations
        )
        entries.extend(
            AuditEntry(
                action=AuditAction.TICKET_ISSUED,
                resource_kind=ResourceKind.TICKET,
                resource_id=ticket.id,
                actor_id=user_id,
                after=snapshot(ticket, 'status', 'ticket_number', 'order_id', 'total_price'),
            )
            for ticket in result.tickets
        )
        await self.audit_trail.record_all(entries)

