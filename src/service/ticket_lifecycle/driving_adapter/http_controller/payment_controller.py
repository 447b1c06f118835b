from fastapi import APIRouter, Depends, status

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.command.initiate_payment_use_case import (
    InitiatePaymentUseCase,
)
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.role_auth import (
    get_current_user,
)
from src.service.ticket_lifecycle.driving_adapter.http_controller.schema.order_schema import (
    InitiatePaymentRequest,
    PaymentInitiationResponse,
)


router = APIRouter()


@router.post('/initiate', status_code=status.HTTP_201_CREATED)
@Logger.io
async def initiate_payment(
    request: InitiatePaymentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: InitiatePaymentUseCase = Depends(InitiatePaymentUseCase.depends),
) -> PaymentInitiationResponse:
    """Open a pending payment and return what the client needs to finish it with the gateway."""
    result = await use_case.execute(
        user_id=current_user.id,
        payment_method=request.payment_method,
        order_id=request.order_id,
        checkout_id=request.checkout_id,
        amount=request.amount,
    )
    return PaymentInitiationResponse.from_result(result)
