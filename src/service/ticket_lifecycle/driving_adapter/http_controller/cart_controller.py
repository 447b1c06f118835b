from uuid import UUID

from fastapi import APIRouter, Depends, status

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.command.cart_item_use_case import (
    AddCartItemUseCase,
    ClearCartUseCase,
    RemoveCartItemUseCase,
    UpdateCartItemUseCase,
)
from src.service.ticket_lifecycle.app.query.cart_query_use_case import GetCartUseCase
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.role_auth import (
    get_current_user,
)
from src.service.ticket_lifecycle.driving_adapter.http_controller.schema.cart_schema import (
    AddCartItemRequest,
    CartResponse,
    UpdateCartItemRequest,
)


router = APIRouter()


@router.get('')
@Logger.io
async def get_cart(
    current_user: CurrentUser = Depends(get_current_user),
    use_case: GetCartUseCase = Depends(GetCartUseCase.depends),
) -> CartResponse:
    view = await use_case.execute(user_id=current_user.id)
    return CartResponse.from_view(view)


@router.post('/items', status_code=status.HTTP_201_CREATED)
@Logger.io
async def add_cart_item(
    request: AddCartItemRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: AddCartItemUseCase = Depends(AddCartItemUseCase.depends),
) -> CartResponse:
    cart = await use_case.execute(
        user_id=current_user.id,
        event_id=request.event_id,
        quantity=request.quantity,
        tier_id=request.tier_id,
        session_id=request.session_id,
        seat_ids=request.seat_ids,
        ticket_type=request.ticket_type,
        ticket_format=request.ticket_format,
        credential_format=request.credential_format,
    )
    return CartResponse.from_entity(cart)


@router.patch('/items/{item_id}')
@Logger.io
async def update_cart_item(
    item_id: UUID,
    request: UpdateCartItemRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: UpdateCartItemUseCase = Depends(UpdateCartItemUseCase.depends),
) -> CartResponse:
    cart = await use_case.execute(
        user_id=current_user.id, item_id=item_id, quantity=request.quantity
    )
    return CartResponse.from_entity(cart)


@router.delete('/items/{item_id}')
@Logger.io
async def remove_cart_item(
    item_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: RemoveCartItemUseCase = Depends(RemoveCartItemUseCase.depends),
) -> CartResponse:
    cart = await use_case.execute(user_id=current_user.id, item_id=item_id)
    return CartResponse.from_entity(cart)


@router.delete('')
@Logger.io
async def clear_cart(
    current_user: CurrentUser = Depends(get_current_user),
    use_case: ClearCartUseCase = Depends(ClearCartUseCase.depends),
) -> CartResponse:
    cart = await use_case.execute(user_id=current_user.id)
    return CartResponse.from_entity(cart)
