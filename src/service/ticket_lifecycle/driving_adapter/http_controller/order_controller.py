from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.command.apply_order_payment_use_case import (
    ApplyOrderPaymentUseCase,
)
from src.service.ticket_lifecycle.app.command.cancel_order_use_case import CancelOrderUseCase
from src.service.ticket_lifecycle.app.query.order_query_use_case import (
    GetOrderUseCase,
    ListOrdersUseCase,
)
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from src.service.ticket_lifecycle.domain.enum.order_status import OrderStatus
from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.role_auth import (
    RoleAuthStrategy,
    get_current_user,
)
from src.service.ticket_lifecycle.driving_adapter.http_controller.schema.order_schema import (
    AppliedPaymentResponse,
    ApplyPaymentRequest,
    CancelOrderRequest,
    OrderDetailResponse,
    OrderListResponse,
)


router = APIRouter()


@router.get('')
@Logger.io
async def list_orders(
    order_status: Optional[OrderStatus] = Query(default=None, alias='status'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    use_case: ListOrdersUseCase = Depends(ListOrdersUseCase.depends),
) -> OrderListResponse:
    result = await use_case.execute(
        user_id=current_user.id, status=order_status, page=page, limit=limit
    )
    return OrderListResponse.from_page(result)


@router.get('/{order_id}')
@Logger.io
async def get_order(
    order_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: GetOrderUseCase = Depends(GetOrderUseCase.depends),
) -> OrderDetailResponse:
    detail = await use_case.execute(
        user_id=current_user.id,
        order_id=order_id,
        acting_as_operator=RoleAuthStrategy.is_operator(current_user),
    )
    return OrderDetailResponse.from_detail(detail)


@router.post('/{order_id}/payments')
@Logger.io
async def apply_payment(
    order_id: UUID,
    request: ApplyPaymentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: ApplyOrderPaymentUseCase = Depends(ApplyOrderPaymentUseCase.depends),
) -> AppliedPaymentResponse:
    result = await use_case.execute(
        user_id=current_user.id,
        order_id=order_id,
        amount_paid=request.amount_paid,
        payment_method=request.payment_method,
        gateway_response=request.gateway_response,
        acting_as_operator=RoleAuthStrategy.is_operator(current_user),
    )
    return AppliedPaymentResponse.from_result(result)


@router.post('/{order_id}/cancel')
@Logger.io
async def cancel_order(
    order_id: UUID,
    request: CancelOrderRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: CancelOrderUseCase = Depends(CancelOrderUseCase.depends),
) -> OrderDetailResponse:
    detail = await use_case.execute(
        user_id=current_user.id,
        order_id=order_id,
        reason=request.reason,
        acting_as_operator=RoleAuthStrategy.is_operator(current_user),
    )
    return OrderDetailResponse.from_detail(detail)
