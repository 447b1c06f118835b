"""
Test doubles for the lifecycle engine's outbound ports

- FakeClock: a settable IClock
- ScriptedGateway: an IPaymentGateway whose answers are set by the test and
  which records every call it receives
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from src.platform.exception.exceptions import GatewayTransientError
from src.service.ticket_lifecycle.app.interface.i_clock import IClock
from src.service.ticket_lifecycle.app.interface.i_payment_gateway import IPaymentGateway
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentGateway
from src.service.ticket_lifecycle.domain.value_object.gateway_result import (
    PaymentIntent,
    RefundResult,
    VerificationResult,
)
from src.service.ticket_lifecycle.domain.value_object.money import Money
from src.service.ticket_lifecycle.driven_adapter.payment_gateway.gateway_registry import (
    PaymentGatewayRegistry,
)
from src.service.ticket_lifecycle.driven_adapter.payment_gateway.offline_gateway import (
    OfflineGateway,
)


class FakeClock(IClock):
    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, moment: datetime) -> None:
        self.current = moment


class ScriptedGateway(IPaymentGateway):
    """Card gateway stand-in; approves everything unless told otherwise."""

    gateway = PaymentGateway.STRIPE

    def __init__(self) -> None:
        self.decline_reason: Optional[str] = None
        self.unreachable = False
        self.verified_amount: Optional[Decimal] = None
        self.refund_failure: Optional[str] = None
        self.intents: list[dict[str, Any]] = []
        self.verifications: list[dict[str, Any]] = []
        self.refunds: list[dict[str, Any]] = []

    async def create_intent(
        self,
        *,
        amount: Money,
        reference: str,
        user_id: UUID,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PaymentIntent:
        self.intents.append({'amount': amount, 'reference': reference, 'user_id': user_id})
        return PaymentIntent(
            gateway=self.gateway,
            reference=reference,
            client_payload={'client_secret': f'secret_{reference}'},
            gateway_transaction_id=f'pi_{reference}',
        )

    async def verify(
        self, *, reference: str, verification_payload: dict[str, Any]
    ) -> VerificationResult:
        self.verifications.append({'reference': reference, **verification_payload})
        if self.unreachable:
            raise GatewayTransientError('Gateway timed out')
        if self.decline_reason is not None:
            return VerificationResult.failed(self.decline_reason)
        return VerificationResult.succeeded(
            transaction_id=f'ch_{reference}', amount=self.verified_amount
        )

    async def refund(
        self, *, transaction_id: str, amount: Money, reason: Optional[str] = None
    ) -> RefundResult:
        self.refunds.append({'transaction_id': transaction_id, 'amount': amount, 'reason': reason})
        if self.refund_failure is not None:
            return RefundResult.failed(self.refund_failure)
        return RefundResult.succeeded(refund_id=f're_{len(self.refunds)}')


def registry_with(gateway: ScriptedGateway) -> PaymentGatewayRegistry:
    return PaymentGatewayRegistry(
        gateways={gateway.gateway: gateway, PaymentGateway.OTHER: OfflineGateway()}
    )
