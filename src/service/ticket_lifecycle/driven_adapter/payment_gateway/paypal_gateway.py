from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import httpx

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import GatewayFatalError, ValidationError
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


class PayPalGateway(IPaymentGateway):
    """PayPal Orders v2: create an order, capture it on verification, refund the capture."""

    gateway = PaymentGateway.PAYPAL

    def __init__(
        self,
        *,
        base_url: str,
        client_id: str,
        client_secret: str,
        return_url: str,
        cancel_url: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip('/')
        self._client_id = client_id
        self._client_secret = client_secret
        self._return_url = return_url
        self._cancel_url = cancel_url
        self._timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        )

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        if not self._client_id:
            raise GatewayFatalError('PayPal is not configured')
        response = await client.post(
            '/v1/oauth2/token',
            data={'grant_type': 'client_credentials'},
            auth=(self._client_id, self._client_secret),
        )
        raise_for_gateway_status(response, gateway=self.gateway.value)
        return response.json()['access_token']

    async def _request(
        self, operation: str, method: str, path: str, **kwargs: Any
    ) -> httpx.Response:
        with observe_gateway_call(gateway=self.gateway.value, operation=operation) as outcome:
            with translate_http_errors(gateway=self.gateway.value):
                async with self._client() as client:
                    token = await self._access_token(client)
                    response = await client.request(
                        method, path, headers={'Authorization': f'Bearer {token}'}, **kwargs
                    )
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
        body = {
            'intent': 'CAPTURE',
            'purchase_units': [
                {
                    'reference_id': reference,
                    'custom_id': str(user_id),
                    'amount': {'currency_code': amount.currency, 'value': str(amount.amount)},
                }
            ],
            'application_context': {
                'return_url': self._return_url,
                'cancel_url': self._cancel_url,
            },
        }

        async def _create() -> httpx.Response:
            response = await self._request(
                'create_intent', 'POST', '/v2/checkout/orders', json=body
            )
            raise_for_gateway_status(response, gateway=self.gateway.value)
            return response

        order = (await call_with_retry(_create)).json()
        approval_url = next(
            (link['href'] for link in order.get('links', []) if link.get('rel') == 'approve'),
            None,
        )
        return PaymentIntent(
            gateway=self.gateway,
            reference=reference,
            gateway_transaction_id=order['id'],
            client_payload={'paypal_order_id': order['id'], 'approval_url': approval_url},
        )

    @Logger.io
    async def verify(
        self, *, reference: str, verification_payload: dict[str, Any]
    ) -> VerificationResult:
        order_id = verification_payload.get('paypal_order_id') or verification_payload.get(
            'payment_intent_id'
        )
        if not order_id:
            raise ValidationError('paypal_order_id is required', field='paypal_order_id')

        response = await self._request('verify', 'POST', f'/v2/checkout/orders/{order_id}/capture')
        if response.status_code == 422:
            issue = response.json().get('details', [{}])[0].get('issue', 'UNPROCESSABLE')
            return VerificationResult.failed(f'PayPal capture refused: {issue}')
        raise_for_gateway_status(response, gateway=self.gateway.value)

        body = response.json()
        if body.get('status') != 'COMPLETED':
            return VerificationResult.failed(f'PayPal order is {body.get("status")}')
        capture = body['purchase_units'][0]['payments']['captures'][0]
        return VerificationResult.succeeded(
            transaction_id=capture['id'],
            amount=Decimal(capture['amount']['value']),
            raw_response={'order_id': body['id'], 'capture_id': capture['id']},
        )

    @Logger.io
    async def refund(
        self, *, transaction_id: str, amount: Money, reason: Optional[str] = None
    ) -> RefundResult:
        response = await self._request(
            'refund',
            'POST',
            f'/v2/payments/captures/{transaction_id}/refund',
            json={
                'amount': {'currency_code': amount.currency, 'value': str(amount.amount)},
                'note_to_payer': reason or 'Ticket refund',
            },
        )
        if 400 <= response.status_code < 500:
            return RefundResult.failed(f'PayPal refused the refund ({response.status_code})')
        raise_for_gateway_status(response, gateway=self.gateway.value)
        body = response.json()
        return RefundResult.succeeded(
            refund_id=body['id'], raw_response={'id': body['id'], 'status': body.get('status')}
        )
