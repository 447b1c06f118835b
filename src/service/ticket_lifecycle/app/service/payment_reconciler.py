from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

from src.platform.database.unit_of_work import AbstractUnitOfWork
from src.platform.exception.exceptions import (
    GatewayFatalError,
    GatewayTransientError,
    NotFoundError,
)
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.dto.audit_entry import AuditEntry, snapshot
from src.service.ticket_lifecycle.app.interface.i_audit_trail import IAuditTrail
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.interface.i_payment_gateway import IPaymentGatewayRegistry
from src.service.ticket_lifecycle.domain.entity.payment_entity import Payment
from src.service.ticket_lifecycle.domain.enum.audit_action import AuditAction, ResourceKind
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentStatus
from src.service.ticket_lifecycle.domain.value_object.gateway_result import (
    RefundResult,
    VerificationResult,
)
from src.service.ticket_lifecycle.domain.value_object.money import Money


class PaymentReconciler:
    """
    Returns money the gateway captured but the engine could not apply

    Runs when the second transaction of a payment flow aborts (the order was
    paid or cancelled concurrently, a reservation expired). The payment is
    claimed (pending -> reconciling) under its row lock before the gateway is
    called, so a payment another request already completed is never refunded
    and two reconcilers never refund the same capture. A failed refund leaves
    the payment reconciling and flagged for manual review.
    """

    def __init__(
        self,
        *,
        uow_factory: Callable[[], AbstractUnitOfWork],
        gateways: IPaymentGatewayRegistry,
        clock: IClock,
        audit_trail: IAuditTrail,
    ) -> None:
        self.uow_factory = uow_factory
        self.gateways = gateways
        self.clock = clock
        self.audit_trail = audit_trail

    @Logger.io
    async def reconcile(
        self, *, payment_id: UUID, verification: VerificationResult, reason: str
    ) -> Optional[Payment]:
        """
        Refund a verified capture that was never applied

        Returns None without touching the gateway when the payment is no longer
        pending (completed, failed or claimed by someone else).
        """
        claimed = await self._claim(payment_id=payment_id, reason=reason, now=self.clock.now())
        if claimed is None:
            return None

        amount = Money(
            verification.amount if verification.amount is not None else claimed.amount,
            claimed.currency,
        )
        transaction_id = verification.transaction_id or claimed.reference_number
        try:
            result = await self.gateways.get(claimed.gateway).refund(
                transaction_id=transaction_id, amount=amount, reason=reason
            )
        except (GatewayTransientError, GatewayFatalError) as e:
            result = RefundResult.failed(e.message)

        now = self.clock.now()
        async with self.uow_factory() as uow:
            current = await uow.payment_repo.get_by_id(payment_id=payment_id, for_update=True)
            if current is None:
                raise NotFoundError('Payment not found')
            if result.success:
                updated = current.mark_reconciled(
                    transaction_id=transaction_id, refund_id=result.refund_id, now=now
                )
            else:
                updated = current.flag_for_review(
                    reason=f'{reason}; refund {result.reason}', now=now
                )
            await uow.payment_repo.update(payment=updated)
            await uow.commit()

        Logger.base.warning(
            f'🔄 [RECONCILE] Payment {claimed.reference_number}: {reason} -> '
            f'{"refunded " + str(amount) if result.success else "manual review"}'
        )
        await self.audit_trail.record(
            AuditEntry(
                action=AuditAction.PAYMENT_RECONCILED,
                resource_kind=ResourceKind.PAYMENT,
                resource_id=claimed.id,
                actor_id=claimed.user_id,
                before={'status': str(PaymentStatus.PENDING)},
                after=snapshot(updated, 'status', 'amount', 'refunded_amount'),
                metadata={
                    'reason': reason,
                    'refund_id': result.refund_id,
                    'refund_failure': result.reason,
                },
                suspicious=not result.success,
            )
        )
        return updated

    async def _claim(self, *, payment_id: UUID, reason: str, now: datetime) -> Optional[Payment]:
        async with self.uow_factory() as uow:
            payment = await uow.payment_repo.get_by_id(payment_id=payment_id, for_update=True)
            if payment is None:
                Logger.base.error(
                    f'⚠️ [RECONCILE] Payment {payment_id} not found, nothing to refund'
                )
                return None
            if payment.status != PaymentStatus.PENDING:
                Logger.base.warning(
                    f'🔄 [RECONCILE] Payment {payment.reference_number} is {payment.status}, '
                    f'capture left in place'
                )
                return None
            claimed = payment.claim_for_reconciliation(reason=reason, now=now)
            await uow.payment_repo.update(payment=claimed)
            await uow.commit()
        return claimed
