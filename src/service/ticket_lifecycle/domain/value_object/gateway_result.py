"""
Results returned by payment gateway adapters

Adapters never raise for a declined payment; they return a failed result.
Exceptions are reserved for transport problems (GatewayTransientError) and
misconfiguration or rejected requests (GatewayFatalError).
"""

from decimal import Decimal
from typing import Any, Optional

import attrs

from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentGateway


@attrs.frozen
class PaymentIntent:
    gateway: PaymentGateway
    reference: str
    client_payload: dict[str, Any] = attrs.field(factory=dict)
    gateway_transaction_id: Optional[str] = None


@attrs.frozen
class VerificationResult:
    success: bool
    transaction_id: Optional[str] = None
    amount: Optional[Decimal] = None
    raw_response: dict[str, Any] = attrs.field(factory=dict)
    reason: Optional[str] = None

    @classmethod
    def succeeded(
        cls,
        *,
        transaction_id: str,
        amount: Optional[Decimal] = None,
        raw_response: dict[str, Any] | None = None,
    ) -> 'VerificationResult':
        return cls(
            success=True,
            transaction_id=transaction_id,
            amount=amount,
            raw_response=raw_response or {},
        )

    @classmethod
    def failed(
        cls, reason: str, *, raw_response: dict[str, Any] | None = None
    ) -> 'VerificationResult':
        return cls(success=False, reason=reason, raw_response=raw_response or {})


@attrs.frozen
class RefundResult:
    success: bool
    refund_id: Optional[str] = None
    raw_response: dict[str, Any] = attrs.field(factory=dict)
    reason: Optional[str] = None

    @classmethod
    def succeeded(
        cls, *, refund_id: str, raw_response: dict[str, Any] | None = None
    ) -> 'RefundResult':
        return cls(success=True, refund_id=refund_id, raw_response=raw_response or {})

    @classmethod
    def failed(
        cls, reason: str, *, raw_response: dict[str, Any] | None = None
    ) -> 'RefundResult':
        return cls(success=False, reason=reason, raw_response=raw_response or {})
