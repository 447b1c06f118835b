from typing import Mapping

from src.platform.config.core_setting import Settings
from src.platform.exception.exceptions import ValidationError
from src.service.ticket_lifecycle.app.interface.i_payment_gateway import (
    IPaymentGateway,
    IPaymentGatewayRegistry,
)
from src.service.ticket_lifecycle.domain.enum.payment_status import PaymentGateway
from src.service.ticket_lifecycle.driven_adapter.payment_gateway.offline_gateway import (
    OfflineGateway,
)
from src.service.ticket_lifecycle.driven_adapter.payment_gateway.paypal_gateway import (
    PayPalGateway,
)
from src.service.ticket_lifecycle.driven_adapter.payment_gateway.stripe_gateway import (
    StripeGateway,
)
from src.service.ticket_lifecycle.driven_adapter.payment_gateway.zim_gateway import ZimGateway


class PaymentGatewayRegistry(IPaymentGatewayRegistry):
    def __init__(self, *, gateways: Mapping[PaymentGateway, IPaymentGateway]) -> None:
        self._gateways = dict(gateways)

    def get(self, gateway: PaymentGateway) -> IPaymentGateway:
        try:
            return self._gateways[gateway]
        except KeyError:
            raise ValidationError(
                f'Payment gateway {gateway} is not available', field='payment_method'
            ) from None

    @classmethod
    def from_settings(cls, config: Settings) -> 'PaymentGatewayRegistry':
        return cls(
            gateways={
                PaymentGateway.STRIPE: StripeGateway(
                    api_key=config.STRIPE_SECRET_KEY.get_secret_value(),
                    timeout=config.GATEWAY_TIMEOUT_SECONDS,
                ),
                PaymentGateway.PAYPAL: PayPalGateway(
                    base_url=config.PAYPAL_BASE_URL,
                    client_id=config.PAYPAL_CLIENT_ID,
                    client_secret=config.PAYPAL_CLIENT_SECRET.get_secret_value(),
                    return_url=config.PAYPAL_RETURN_URL,
                    cancel_url=config.PAYPAL_CANCEL_URL,
                    timeout=config.GATEWAY_TIMEOUT_SECONDS,
                ),
                PaymentGateway.ZIM_GATEWAY: ZimGateway(
                    base_url=config.ZIM_GATEWAY_BASE_URL,
                    api_key=config.ZIM_GATEWAY_API_KEY.get_secret_value(),
                    return_url=config.ZIM_GATEWAY_RETURN_URL,
                    timeout=config.GATEWAY_TIMEOUT_SECONDS,
                ),
                PaymentGateway.OTHER: OfflineGateway(),
            }
        )
