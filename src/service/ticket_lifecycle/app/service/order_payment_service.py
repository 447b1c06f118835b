"""
Order Payment Service

The database halves of the two-phase payment flow:

1. ``open_payment`` (first short transaction): a pending Payment with a fresh
   reference number
2. gateway verification happens in the use case, outside any transaction
3. ``apply_verified`` (second short transaction): conditional on the order and
   payment still being in the states the first transaction saw
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import attrs
from uuid_utils.compat import uuid7

from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.exception.exceptions import (
    ConflictingStateError,
    InternalError,
    NotFoundError,
)
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics
from src.service.ticket_lifecycle.app.dto.lifecycle_results import AppliedPayment
from src.service.ticket_lifecycle.app.service.reservation_manager import ReservationManager
from src.service.ticket_lifecycle.domain.credential_domain import generate_payment_reference
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentGateway, PaymentStatus
from src.service.ticket_lifecycle.domain.enum.ticket_status import TicketStatus
from src.service.ticket_lifecycle.domain.value_object.gateway_result import VerificationResult
from src.service.ticket_lifecycle.domain.value_object.money import Money


REFERENCE_ATTEMPTS = 5


class OrderPaymentService:
    def __init__(self, *, reservations: ReservationManager) -> None:
        self.reservations = reservations

    @Logger.io
    async def open_payment(
        self,
        uow: AbstractUnitOfWork,
        *,
        user_id: UUID,
        payment_method: str,
        amount: Money,
        now: datetime,
        order_id: Optional[UUID] = None,
        checkout_id: Optional[UUID] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Payment:
        payment = Payment(
            id=uuid7(),
            user_id=user_id,
            gateway=PaymentGateway.for_method(payment_method),
            payment_method=payment_method,
            reference_number=await self.unique_reference(uow, now=now),
            amount=amount.amount,
            currency=amount.currency,
            order_id=order_id,
            checkout_id=checkout_id,
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )
        return await uow.payment_repo.create(payment=payment)

    async def unique_reference(self, uow: AbstractUnitOfWork, *, now: datetime) -> str:
        for _ in range(REFERENCE_ATTEMPTS):
            candidate = generate_payment_reference(now)
            if not await uow.payment_repo.reference_exists(reference_number=candidate):
                return candidate
        raise InternalError('Could not allocate a unique payment reference')

    @Logger.io
    async def mark_failed(
        self,
        uow: AbstractUnitOfWork,
        *,
        payment_id: UUID,
        reason: str,
        now: datetime,
        gateway_response: Optional[dict[str, Any]] = None,
    ) -> Optional[Payment]:
        payment = await uow.payment_repo.get_by_id(payment_id=payment_id, for_update=True)
        if payment is None or payment.status != PaymentStatus.PENDING:
            return payment
        failed = payment.fail(reason=reason, now=now, gateway_response=gateway_response)
        return await uow.payment_repo.update(payment=failed)

    @Logger.io
    async def apply_verified(
        self,
        uow: AbstractUnitOfWork,
        *,
        order_id: UUID,
        payment_id: UUID,
        verification: VerificationResult,
        now: datetime,
    ) -> AppliedPayment:
        """
        Apply a verified payment to its order

        Any applied amount consumes the order's held reservations so the expiry
        sweep leaves them alone; full payment also confirms reserved tickets.

        Raises:
            ConflictingStateError: the order or payment moved since the first
                transaction; the caller hands the verified money to the reconciler
        """
        order = await uow.order_repo.get_by_id(order_id=order_id)
        if order is None:
            raise NotFoundError('Order not found')
        tickets = await uow.ticket_repo.list_by_order(order_id=order_id)

        # Lock order: events, reservations, order, tickets, payment
        await self.reservations.lock_events(uow, event_ids=[t.event_id for t in tickets])
        held = [
            r
            for r in await uow.reservation_repo.lock_many(reservation_ids=order.reservation_ids)
            if r.is_active
        ]
        order = await uow.order_repo.get_by_id(order_id=order_id, for_update=True)
        if order is None:
            raise NotFoundError('Order not found')
        tickets = await uow.ticket_repo.list_by_order(order_id=order_id, for_update=True)
        payment = await uow.payment_repo.get_by_id(payment_id=payment_id, for_update=True)
        if payment is None:
            raise NotFoundError('Payment not found')
        if payment.status != PaymentStatus.PENDING:
            raise ConflictingStateError(
                f'Payment is {payment.status}', current_state=str(payment.status)
            )

        verified_amount = (
            verification.amount if verification.amount is not None else payment.amount
        )
        updated_order, applied = order.apply_payment(amount=verified_amount, now=now)
        completed = payment.complete(
            transaction_id=verification.transaction_id,
            gateway_response=verification.raw_response,
            order_id=order.id,
            now=now,
        )
        completed = attrs.evolve(completed, amount=applied)
        if applied < verified_amount:
            completed = completed.flag_for_review(
                reason=f'Overpayment of {verified_amount - applied} {payment.currency}', now=now
            )

        confirmed_reservations = []
        if held:
            confirmed_reservations = await self.reservations.confirm(
                uow,
                reservation_ids=[r.id for r in held],
                user_id=order.user_id,
                payment_id=payment.id,
                now=now,
                order_id=order.id,
            )

        confirmed_tickets = []
        if updated_order.status == OrderStatus.CONFIRMED:
            for ticket in tickets:
                if ticket.status == TicketStatus.RESERVED:
                    confirmed = ticket.confirm(now=now)
                    await uow.ticket_repo.update(ticket=confirmed)
                    confirmed_tickets.append(confirmed)

        await uow.order_repo.update(order=updated_order)
        await uow.payment_repo.update(payment=completed)
        metrics.order_payments_applied.labels(resulting_status=updated_order.status.value).inc()
        Logger.base.info(
            f'💰 [PAYMENT] Applied {applied} {order.currency} to order {order.id} '
            f'-> {updated_order.status} (balance {updated_order.balance_due})'
        )
        return AppliedPayment(
            order_before=order,
            order=updated_order,
            payment=completed,
            applied=applied,
            confirmed_tickets=confirmed_tickets,
            confirmed_reservations=confirmed_reservations,
        )
