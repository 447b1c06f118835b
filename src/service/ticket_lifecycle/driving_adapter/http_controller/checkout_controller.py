from uuid import UUID

from fastapi import APIRouter, Depends, status
from opentelemetry import trace

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.command.cancel_checkout_use_case import (
    CancelCheckoutUseCase,
)
from src.service.ticket_lifecycle.app.command.complete_checkout_use_case import (
    CompleteCheckoutUseCase,
)
from src.service.ticket_lifecycle.app.command.initiate_checkout_use_case import (
    InitiateCheckoutUseCase,
)
from src.service.ticket_lifecycle.app.query.order_query_use_case import GetCheckoutUseCase
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.role_auth import (
    get_current_user,
)
from src.service.ticket_lifecycle.driving_adapter.http_controller.schema.checkout_schema import (
    CheckoutCompletionResponse,
    CheckoutInitiationResponse,
    CheckoutResponse,
    CompleteCheckoutRequest,
    InitiateCheckoutRequest,
)


router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post('', status_code=status.HTTP_201_CREATED)
@Logger.io
async def initiate_checkout(
    request: InitiateCheckoutRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: InitiateCheckoutUseCase = Depends(InitiateCheckoutUseCase.depends),
) -> CheckoutInitiationResponse:
    result = await use_case.execute(
        user_id=current_user.id,
        payment_method=request.payment_method,
        billing_info=request.billing_info.to_value() if request.billing_info else None,
    )
    return CheckoutInitiationResponse.from_result(result)


@router.post('/complete')
@Logger.io
async def complete_checkout(
    request: CompleteCheckoutRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: CompleteCheckoutUseCase = Depends(CompleteCheckoutUseCase.depends),
) -> CheckoutCompletionResponse:
    with tracer.start_as_current_span('controller.complete_checkout') as span:
        span.set_attribute('checkout.id', str(request.checkout_id))
        result = await use_case.execute(
            user_id=current_user.id,
            checkout_id=request.checkout_id,
            payment_intent_id=request.payment_intent_id,
            stripe_token=request.stripe_token,
            payment_method=request.payment_method,
            amount_paid=request.amount_paid,
            verification_payload=request.verification_payload,
        )
        span.set_attribute('order.id', str(result.order.id))
        return CheckoutCompletionResponse.from_result(result)


@router.post('/{checkout_id}/cancel')
@Logger.io
async def cancel_checkout(
    checkout_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: CancelCheckoutUseCase = Depends(CancelCheckoutUseCase.depends),
) -> CheckoutResponse:
    checkout = await use_case.execute(user_id=current_user.id, checkout_id=checkout_id)
    return CheckoutResponse.from_entity(checkout)


@router.get('/{checkout_id}')
@Logger.io
async def get_checkout(
    checkout_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: GetCheckoutUseCase = Depends(GetCheckoutUseCase.depends),
) -> CheckoutResponse:
    checkout = await use_case.execute(user_id=current_user.id, checkout_id=checkout_id)
    return CheckoutResponse.from_entity(checkout)
