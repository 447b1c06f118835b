from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from opentelemetry import trace

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.command.cancel_ticket_use_case import CancelTicketUseCase
from src.service.ticket_lifecycle.app.command.confirm_ticket_payment_use_case import (
    ConfirmTicketPaymentUseCase,
)
from src.service.ticket_lifecycle.app.command.purchase_tickets_use_case import (
    PurchaseTicketsUseCase,
)
from src.service.ticket_lifecycle.app.command.validate_ticket_use_case import (
    ValidateTicketUseCase,
)
from src.service.ticket_lifecycle.app.query.ticket_query_use_case import (
    GetInventoryUseCase,
    GetTicketUseCase,
    ListUserTicketsUseCase,
    RenderTicketQrUseCase,
)
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.role_auth import (
    RoleAuthStrategy,
    get_current_user,
    require_organizer_or_admin,
)
from src.service.ticket_lifecycle.driving_adapter.http_controller.schema.order_schema import (
    AppliedPaymentResponse,
    PurchaseResponse,
)
from src.service.ticket_lifecycle.driving_adapter.http_controller.schema.ticket_schema import (
    ConfirmTicketPaymentRequest,
    InventoryResponse,
    PurchaseTicketsRequest,
    TicketCancellationResponse,
    TicketResponse,
    ValidateTicketRequest,
    ValidationResponse,
)


router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post('/purchase', status_code=status.HTTP_201_CREATED)
@Logger.io
async def purchase_tickets(
    request: PurchaseTicketsRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: PurchaseTicketsUseCase = Depends(PurchaseTicketsUseCase.depends),
) -> PurchaseResponse:
    """Reserve tickets directly on an event, without a cart; pay through confirm-payment."""
    with tracer.start_as_current_span('controller.purchase_tickets') as span:
        span.set_attribute('event.id', str(request.event_id))
        span.set_attribute('quantity', request.quantity)
        result = await use_case.execute(
            user_id=current_user.id,
            event_id=request.event_id,
            quantity=request.quantity,
            ticket_type=request.ticket_type,
            ticket_format=request.ticket_format,
            credential_format=request.credential_format,
            tier_id=request.tier_id,
            session_id=request.session_id,
            seat_numbers=request.seat_numbers,
        )
        span.set_attribute('order.id', str(result.order.id))
        return PurchaseResponse.from_result(result)


@router.get('')
@Logger.io
async def list_my_tickets(
    current_user: CurrentUser = Depends(get_current_user),
    use_case: ListUserTicketsUseCase = Depends(ListUserTicketsUseCase.depends),
) -> List[TicketResponse]:
    tickets = await use_case.execute(user_id=current_user.id)
    return [TicketResponse.from_entity(t) for t in tickets]


@router.post('/validate')
@Logger.io
async def validate_ticket(
    request: ValidateTicketRequest,
    current_user: CurrentUser = Depends(require_organizer_or_admin),
    use_case: ValidateTicketUseCase = Depends(ValidateTicketUseCase.depends),
) -> ValidationResponse:
    outcome = await use_case.execute(
        qr_code_data=request.qr_code_data,
        nfc_data=request.nfc_data,
        rfid_data=request.rfid_data,
        barcode_data=request.barcode_data,
        ticket_id=request.ticket_id,
        validator_id=current_user.id,
    )
    ticket = outcome.ticket
    return ValidationResponse(
        ticket_id=ticket.id,
        ticket_number=ticket.ticket_number,
        event_id=ticket.event_id,
        ticket_type=ticket.ticket_type.value,
        seat_label=ticket.seat_label,
        validation_method=outcome.validation_method,
        used_at=ticket.used_at,
    )


@router.get('/events/{event_id}/inventory')
@Logger.io
async def get_inventory(
    event_id: UUID,
    use_case: GetInventoryUseCase = Depends(GetInventoryUseCase.depends),
) -> InventoryResponse:
    snapshot = await use_case.execute(event_id=event_id)
    return InventoryResponse.from_snapshot(snapshot)


@router.get('/{ticket_id}')
@Logger.io
async def get_ticket(
    ticket_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: GetTicketUseCase = Depends(GetTicketUseCase.depends),
) -> TicketResponse:
    ticket = await use_case.execute(user_id=current_user.id, ticket_id=ticket_id)
    return TicketResponse.from_entity(ticket)


@router.get('/{ticket_id}/qr', response_class=Response)
@Logger.io
async def get_ticket_qr(
    ticket_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: RenderTicketQrUseCase = Depends(RenderTicketQrUseCase.depends),
) -> Response:
    png = await use_case.execute(user_id=current_user.id, ticket_id=ticket_id)
    return Response(
        content=png,
        media_type='image/png',
        headers={'Cache-Control': 'no-store'},
    )


@router.post('/{ticket_id}/confirm-payment')
@Logger.io
async def confirm_ticket_payment(
    ticket_id: UUID,
    request: ConfirmTicketPaymentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: ConfirmTicketPaymentUseCase = Depends(ConfirmTicketPaymentUseCase.depends),
) -> AppliedPaymentResponse:
    result = await use_case.execute(
        user_id=current_user.id,
        ticket_id=ticket_id,
        payment_method=request.payment_method,
        gateway_response=request.gateway_response,
        acting_as_operator=RoleAuthStrategy.is_operator(current_user),
    )
    return AppliedPaymentResponse.from_result(result)


@router.post('/{ticket_id}/cancel')
@Logger.io
async def cancel_ticket(
    ticket_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: CancelTicketUseCase = Depends(CancelTicketUseCase.depends),
) -> TicketCancellationResponse:
    result = await use_case.execute(user_id=current_user.id, ticket_id=ticket_id)
    return TicketCancellationResponse(
        ticket_id=result.ticket.id,
        ticket_status=result.ticket.status.value,
        order_id=result.order.id,
        order_status=result.order.status.value,
        order_total=result.order.total_amount,
    )
