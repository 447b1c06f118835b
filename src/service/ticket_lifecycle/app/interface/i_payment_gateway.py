"""
Payment Gateway Interface

One implementation per gateway variant (stripe, paypal, zim_gateway, offline).
Implementations are stateless handles and safe to share between requests.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentGateway
from src.service.ticket_lifecycle.domain.value_object.gateway_result import (
    PaymentIntent,
    RefundResult,
    VerificationResult,
)
from src.service.ticket_lifecycle.domain.value_object.money import Money


class IPaymentGateway(ABC):
    gateway: PaymentGateway

    def quote_fee(self, amount: Money) -> Money:
        """Gateway surcharge passed through to the buyer; none by default."""
        return Money.zero(amount.currency)

    @abstractmethod
    async def create_intent(
        self,
        *,
        amount: Money,
        reference: str,
        user_id: UUID,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PaymentIntent:
        """
        Open a payment with the gateway

        Transient failures are retried inside the adapter; an exhausted retry
        budget surfaces as GatewayTransientError.
        """
        pass

    @abstractmethod
    async def verify(
        self, *, reference: str, verification_payload: dict[str, Any]
    ) -> VerificationResult:
        """
        Confirm the buyer actually paid

        Never retried: a transport failure raises GatewayTransientError and the
        payment stays pending.
        """
        pass

    @abstractmethod
    async def refund(
        self, *, transaction_id: str, amount: Money, reason: Optional[str] = None
    ) -> RefundResult:
        pass


class IPaymentGatewayRegistry(ABC):
    @abstractmethod
    def get(self, gateway: PaymentGateway) -> IPaymentGateway:
        pass

    def for_method(self, payment_method: str) -> IPaymentGateway:
        return self.get(PaymentGateway.for_method(payment_method))
