from typing import Any, Optional
from uuid import UUID

from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics
from src.service.ticket_lifecycle.app.interface.i_payment_gateway import IPaymentGateway
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentGateway
from src.service.ticket_lifecycle.domain.value_object.gateway_result import (
    PaymentIntent,
    RefundResult,
    VerificationResult,
)
from src.service.ticket_lifecycle.domain.value_object.money import Money


class OfflineGateway(IPaymentGateway):
    """
    Cash, bank transfer and box-office payments

    Nothing leaves the process. A payment only verifies when an operator has
    confirmed receipt (``operator_confirmed`` in the verification payload).
    """

    gateway = PaymentGateway.OTHER

    @Logger.io
    async def create_intent(
        self,
        *,
        amount: Money,
        reference: str,
        user_id: UUID,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PaymentIntent:
        metrics.record_gateway_call(
            gateway=self.gateway.value, operation='create_intent', result='ok', duration=0.0
        )
        return PaymentIntent(
            gateway=self.gateway,
            reference=reference,
            client_payload={
                'reference': reference,
                'amount': str(amount.amount),
                'currency': amount.currency,
                'instructions': (
                    f'Pay {amount} at the box office or by bank transfer quoting {reference}'
                ),
            },
        )

    @Logger.io
    async def verify(
        self, *, reference: str, verification_payload: dict[str, Any]
    ) -> VerificationResult:
        confirmed = verification_payload.get('operator_confirmed') is True
        metrics.record_gateway_call(
            gateway=self.gateway.value,
            operation='verify',
            result='ok' if confirmed else 'declined',
            duration=0.0,
        )
        if not confirmed:
            return VerificationResult.failed('Awaiting operator confirmation')
        return VerificationResult.succeeded(
            transaction_id=f'OFFLINE-{reference}',
            raw_response={
                'method': verification_payload.get('payment_method', 'cash'),
                'recorded_by': verification_payload.get('recorded_by'),
            },
        )

    @Logger.io
    async def refund(
        self, *, transaction_id: str, amount: Money, reason: Optional[str] = None
    ) -> RefundResult:
        metrics.record_gateway_call(
            gateway=self.gateway.value, operation='refund', result='ok', duration=0.0
        )
        return RefundResult.succeeded(
            refund_id=f'OFFLINE-REFUND-{transaction_id}',
            raw_response={'amount': str(amount.amount), 'reason': reason},
        )
