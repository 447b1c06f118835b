from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import httpx

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import GatewayFatalError
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
    raise_for_gateway_status,
    translate_http_errors,
)


_PAID_STATUSES = frozenset({'paid', 'completed', 'success'})


class ZimGateway(IPaymentGateway):
    """Zimbabwean switch aggregator (EcoCash, ZIPIT, ZimSwitch): hosted payment page flow."""

    gateway = PaymentGateway.ZIM_GATEWAY

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        return_url: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip('/')
        self._api_key = api_key
        self._return_url = return_url
        self._timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS
        self._transport = transport

    async def _request(
        self, operation: str, method: str, path: str, **kwargs: Any
    ) -> httpx.Response:
        if not self._api_key:
            raise GatewayFatalError('Zim gateway is not configured')
        with observe_gateway_call(gateway=self.gateway.value, operation=operation) as outcome:
            with translate_http_errors(gateway=self.gateway.value):
                async with httpx.AsyncClient(
                    base_url=self._base_url,
                    timeout=self._timeout,
                    transport=self._transport,
                    headers={'X-API-Key': self._api_key},
                ) as client:
                    response = await client.request(method, path, **kwargs)
            outcome.result = 'ok' if response.status_code < 400 else 'rejected'
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
        async def _create() -> httpx.Response:
            response = await self._request(
                'create_intent',
                'POST',
                '/payments',
                json={
                    'reference': reference,
                    'amount': str(amount.amount),
                    'currency': amount.currency,
                    'customer_id': str(user_id),
                    'return_url': self._return_url,
                    'metadata': metadata or {},
                },
            )
            raise_for_gateway_status(response, gateway=self.gateway.value)
            return response

        body = (await call_with_retry(_create)).json()
        return PaymentIntent(
            gateway=self.gateway,
            reference=reference,
            gateway_transaction_id=body.get('transaction_id'),
            client_payload={
                'payment_url': body.get('payment_url'),
                'transaction_id': body.get('transaction_id'),
            },
        )

    @Logger.io
    async def verify(
        self, *, reference: str, verification_payload: dict[str, Any]
    ) -> VerificationResult:
        lookup = verification_payload.get('transaction_id') or reference
        response = await self._request('verify', 'GET', f'/payments/{lookup}')
        if response.status_code == 404:
            return VerificationResult.failed('Unknown transaction')
        raise_for_gateway_status(response, gateway=self.gateway.value)

        body = response.json()
        status = str(body.get('status', '')).lower()
        if status not in _PAID_STATUSES:
            return VerificationResult.failed(f'Transaction is {status or "unknown"}')
        return VerificationResult.succeeded(
            transaction_id=body['transaction_id'],
            amount=Decimal(str(body['amount'])) if body.get('amount') is not None else None,
            raw_response={'transaction_id': body['transaction_id'], 'status': status},
        )

    @Logger.io
    async def refund(
        self, *, transaction_id: str, amount: Money, reason: Optional[str] = None
    ) -> RefundResult:
        response = await self._request(
            'refund',
            'POST',
            f'/payments/{transaction_id}/refunds',
            json={'amount': str(amount.amount), 'currency': amount.currency, 'reason': reason},
        )
        if 400 <= response.status_code < 500:
            return RefundResult.failed(f'Zim gateway refused the refund ({response.status_code})')
        raise_for_gateway_status(response, gateway=self.gateway.value)
        body = response.json()
        return RefundResult.succeeded(refund_id=body['refund_id'], raw_response=body)
