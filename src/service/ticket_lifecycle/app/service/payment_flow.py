"""
Payment Flow

The gateway half of every payment path (checkout completion, order top-ups,
legacy ticket payments). Verification runs with no transaction open; the
caller's apply step runs in a second short transaction and, if it aborts,
the captured money goes to the reconciler.
"""

from typing import Any, Awaitable, Callable, TypeVar
from uuid import UUID

from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.exception.exceptions import (
    CustomBaseError,
    GatewayFatalError,
    GatewayTransientError,
)
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.interface.i_payment_gateway import IPaymentGatewayRegistry
from src.service.ticket_lifecycle.app.service.order_payment_service import OrderPaymentService
from src.service.ticket_lifecycle.app.service.payment_reconciler import PaymentReconciler
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.value_object.gateway_result import VerificationResult


T = TypeVar('T')


class PaymentFlow:
    def __init__(
        self,
        *,
        gateways: IPaymentGatewayRegistry,
        payments: OrderPaymentService,
        reconciler: PaymentReconciler,
        audit_trail: IAuditTrail,
        clock: IClock,
    ) -> None:
        self.gateways = gateways
        self.payments = payments
        self.reconciler = reconciler
        self.audit_trail = audit_trail
        self.clock = clock

    @Logger.io
    async def verify(
        self,
        uow: AbstractUnitOfWork,
        *,
        payment: Payment,
        verification_payload: dict[str, Any],
    ) -> VerificationResult:
        """
        Ask the gateway whether the buyer paid

        Raises:
            GatewayTransientError: the gateway could not be reached; the payment
                stays pending and the caller may retry
            GatewayFatalError: the gateway declined; the payment is marked failed
        """
        gateway = self.gateways.get(payment.gateway)
        payload = {
            'amount': str(payment.amount),
            'currency': payment.currency,
            **verification_payload,
        }
        try:
            result = await gateway.verify(
                reference=payment.reference_number, verification_payload=payload
            )
        except GatewayTransientError:
            Logger.base.warning(
                f'⏳ [PAYMENT] Verification of {payment.reference_number} did not complete, '
                f'payment left pending'
            )
            raise

        if result.success:
            return result

        reason = result.reason or 'declined'
        async with uow:
            failed = await self.payments.mark_failed(
                uow,
                payment_id=payment.id,
                reason=reason,
                now=self.clock.now(),
                gateway_response=result.raw_response,
            )
            await uow.commit()
        Logger.base.warning(f'❌ [PAYMENT] {payment.reference_number} declined: {reason}')
        await self.audit_trail.record(
            AuditEntry(
                action=AuditAction.PAYMENT_FAILED,
                resource_kind=ResourceKind.PAYMENT,
                resource_id=payment.id,
                actor_id=payment.user_id,
                before=snapshot(payment, 'status', 'amount'),
                after=snapshot(failed, 'status', 'amount'),
                metadata={'reason': reason},
            )
        )
        raise GatewayFatalError(f'Payment verification failed: {reason}')

    async def apply_or_reconcile(
        self,
        uow: AbstractUnitOfWork,
        *,
        payment_id: UUID,
        verification: VerificationResult,
        apply: Callable[[AbstractUnitOfWork], Awaitable[T]],
    ) -> T:
        """Run ``apply`` in its own transaction; refund the verified money if it aborts."""
        try:
            async with uow:
                result = await apply(uow)
                await uow.commit()
            return result
        except CustomBaseError as e:
            Logger.base.warning(
                f'🔄 [PAYMENT] Verified payment {payment_id} could not be applied: {e.message}'
            )
            await self.reconciler.reconcile(
                payment_id=payment_id, verification=verification, reason=e.message
            )
            raise
