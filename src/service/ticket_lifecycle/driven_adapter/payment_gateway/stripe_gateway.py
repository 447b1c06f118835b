from decimal import Decimal
from functools import partial
from typing import Any, Optional
from uuid import UUID

import anyio
import stripe

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import (
    GatewayFatalError,
    GatewayTransientError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.interface.i_payment_gateway import IPaymentGateway
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentGateway
from src.service.ticket_lifecycle.domain.value_object.gateway_result import (
    PaymentIntent,
    RefundResult,
    VerificationResult,
)
from src.service.ticket_lifecycle.domain.value_object.money import Money
from src.service.ticket_lifecycle.driven_adapter.payment_gateway.gateway_call import (
    call_with_retry,
    observe_gateway_call,
)


_TRANSIENT_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)


def to_minor_units(amount: Money) -> int:
    return int((amount.amount * 100).to_integral_value())


def from_minor_units(value: int) -> Decimal:
    return (Decimal(value) / 100).quantize(Decimal('0.01'))


class StripeGateway(IPaymentGateway):
    """
    Card payments through Stripe PaymentIntents

    The Stripe SDK is synchronous, so every call runs on a worker thread with a
    per-call API key and the configured timeout.
    """

    gateway = PaymentGateway.STRIPE

    def __init__(self, *, api_key: str, timeout: float | None = None) -> None:
        self._api_key = api_key
        self._timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS

    async def _call(self, operation: str, func: Any, **params: Any) -> Any:
        if not self._api_key:
            raise GatewayFatalError('Stripe is not configured')
        with observe_gateway_call(gateway=self.gateway.value, operation=operation) as outcome:
            try:
                with anyio.fail_after(self._timeout):
                    response = await anyio.to_thread.run_sync(
                        partial(func, api_key=self._api_key, **params), abandon_on_cancel=True
                    )
            except TimeoutError as e:
                raise GatewayTransientError(f'Stripe {operation} timed out') from e
            except _TRANSIENT_ERRORS as e:
                message = e.user_message or str(e)
                raise GatewayTransientError(f'Stripe {operation} failed: {message}') from e
            outcome.result = 'ok'
            return response

    @Logger.io
    async def create_intent(
        self,
        *,
        amount: Money,
        reference: str,
        user_id: UUID,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PaymentIntent:
        async def _create() -> Any:
            try:
                return await self._call(
                    'create_intent',
                    stripe.PaymentIntent.create,
                    amount=to_minor_units(amount),
                    currency=amount.currency.lower(),
                    metadata={'reference': reference, 'user_id': str(user_id), **(metadata or {})},
                    idempotency_key=reference,
                )
            except stripe.StripeError as e:
                raise GatewayFatalError(f'Stripe rejected the intent: {e.user_message or e}') from e

        intent = await call_with_retry(_create)
        return PaymentIntent(
            gateway=self.gateway,
            reference=reference,
            gateway_transaction_id=intent['id'],
            client_payload={
                'payment_intent_id': intent['id'],
                'client_secret': intent['client_secret'],
            },
        )

    @Logger.io
    async def verify(
        self, *, reference: str, verification_payload: dict[str, Any]
    ) -> VerificationResult:
        intent_id = verification_payload.get('payment_intent_id')
        token = verification_payload.get('stripe_token')
        try:
            if intent_id:
                intent = await self._call(
                    'verify', stripe.PaymentIntent.retrieve, id=intent_id
                )
                if intent['status'] != 'succeeded':
                    return VerificationResult.failed(
                        f'Payment intent is {intent["status"]}', raw_response=dict(intent)
                    )
                return VerificationResult.succeeded(
                    transaction_id=intent['id'],
                    amount=from_minor_units(intent['amount_received']),
                    raw_response={'id': intent['id'], 'status': intent['status']},
                )
            if token:
                amount = Money(verification_payload['amount'], verification_payload['currency'])
                charge = await self._call(
                    'verify',
                    stripe.Charge.create,
                    amount=to_minor_units(amount),
                    currency=amount.currency.lower(),
                    source=token,
                    description=reference,
                    idempotency_key=f'{reference}-charge',
                )
                if charge['status'] != 'succeeded':
                    return VerificationResult.failed(f'Charge is {charge["status"]}')
                return VerificationResult.succeeded(
                    transaction_id=charge['id'],
                    amount=from_minor_units(charge['amount']),
                    raw_response={'id': charge['id'], 'status': charge['status']},
                )
        except stripe.CardError as e:
            return VerificationResult.failed(e.user_message or 'Card declined')
        except stripe.StripeError as e:
            raise GatewayFatalError(f'Stripe verification failed: {e.user_message or e}') from e

        raise ValidationError(
            'payment_intent_id or stripe_token is required', field='payment_intent_id'
        )

    @Logger.io
    async def refund(
        self, *, transaction_id: str, amount: Money, reason: Optional[str] = None
    ) -> RefundResult:
        target = (
            {'payment_intent': transaction_id}
            if transaction_id.startswith('pi_')
            else {'charge': transaction_id}
        )
        try:
            refund = await self._call(
                'refund',
                stripe.Refund.create,
                amount=to_minor_units(amount),
                metadata={'reason': reason or ''},
                **target,
            )
        except stripe.StripeError as e:
            return RefundResult.failed(e.user_message or str(e))
        if refund['status'] in ('failed', 'canceled'):
            return RefundResult.failed(f'Refund is {refund["status"]}')
        return RefundResult.succeeded(
            refund_id=refund['id'], raw_response={'id': refund['id'], 'status': refund['status']}
        )
