from typing import List, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, status

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.command.ticket_transfer_use_case import (
    AcceptTransferUseCase,
    CancelTransferUseCase,
    DeclineTransferUseCase,
    InitiateTransferUseCase,
)
from src.service.ticket_lifecycle.app.query.transfer_query_use_case import (
    PendingTransfersUseCase,
    TransferHistoryUseCase,
)
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.role_auth import (
    get_current_user,
)
from src.service.ticket_lifecycle.driving_adapter.http_controller.schema.ticket_schema import (
    TicketResponse,
)
from src.service.ticket_lifecycle.driving_adapter.http_controller.schema.transfer_schema import (
    AcceptTransferRequest,
    InitiateTransferRequest,
    TransferResponse,
)


router = APIRouter()


@router.post('', status_code=status.HTTP_201_CREATED)
@Logger.io
async def initiate_transfer(
    request: InitiateTransferRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: InitiateTransferUseCase = Depends(InitiateTransferUseCase.depends),
) -> TransferResponse:
    transfer = await use_case.execute(
        user_id=current_user.id,
        ticket_id=request.ticket_id,
        to_user_id=request.to_user_id,
        to_email=request.to_email,
        message=request.message,
    )
    return TransferResponse.from_entity(transfer, include_code=True)


@router.get('/pending')
@Logger.io
async def list_pending_transfers(
    direction: Literal['incoming', 'outgoing', 'all'] = 'all',
    current_user: CurrentUser = Depends(get_current_user),
    use_case: PendingTransfersUseCase = Depends(PendingTransfersUseCase.depends),
) -> List[TransferResponse]:
    transfers = await use_case.execute(user_id=current_user.id, direction=direction)
    return [TransferResponse.from_entity(t) for t in transfers]


@router.get('/tickets/{ticket_id}')
@Logger.io
async def transfer_history(
    ticket_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: TransferHistoryUseCase = Depends(TransferHistoryUseCase.depends),
) -> List[TransferResponse]:
    transfers = await use_case.execute(user_id=current_user.id, ticket_id=ticket_id)
    return [TransferResponse.from_entity(t) for t in transfers]


@router.post('/{transfer_id}/accept')
@Logger.io
async def accept_transfer(
    transfer_id: UUID,
    request: AcceptTransferRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: AcceptTransferUseCase = Depends(AcceptTransferUseCase.depends),
) -> TicketResponse:
    """Returns the ticket as the new owner sees it, with the rotated credential."""
    result = await use_case.execute(
        user_id=current_user.id,
        transfer_id=transfer_id,
        transfer_code=request.transfer_code,
    )
    return TicketResponse.from_entity(result.ticket)


@router.post('/{transfer_id}/decline')
@Logger.io
async def decline_transfer(
    transfer_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: DeclineTransferUseCase = Depends(DeclineTransferUseCase.depends),
) -> TransferResponse:
    transfer = await use_case.execute(user_id=current_user.id, transfer_id=transfer_id)
    return TransferResponse.from_entity(transfer)


@router.post('/{transfer_id}/cancel')
@Logger.io
async def cancel_transfer(
    transfer_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: CancelTransferUseCase = Depends(CancelTransferUseCase.depends),
) -> TransferResponse:
    transfer = await use_case.execute(user_id=current_user.id, transfer_id=transfer_id)
    return TransferResponse.from_entity(transfer)
