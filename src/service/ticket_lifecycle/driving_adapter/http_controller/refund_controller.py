from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.platform.logging.loguru_io import Logger
from src.service.ticket_lifecycle.app.command.ticket_refund_use_case import (
    ApproveRefundUseCase,
    RejectRefundUseCase,
    RequestRefundUseCase,
)
from src.service.ticket_lifecycle.app.query.refund_query_use_case import (
    PendingRefundsUseCase,
    RefundHistoryUseCase,
    RefundStatsUseCase,
)
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser
from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.role_auth import (
    RoleAuthStrategy,
    get_current_user,
    require_organizer_or_admin,
)
from src.service.ticket_lifecycle.driving_adapter.http_controller.schema.refund_schema import (
    RefundListResponse,
    RefundResponse,
    RefundStatsResponse,
    RejectRefundRequest,
    RequestRefundRequest,
)


router = APIRouter()


@router.post('/tickets/{ticket_id}', status_code=status.HTTP_201_CREATED)
@Logger.io
async def request_refund(
    ticket_id: UUID,
    request: RequestRefundRequest,
    current_user: CurrentUser = Depends(get_current_user),
    use_case: RequestRefundUseCase = Depends(RequestRefundUseCase.depends),
) -> RefundResponse:
    refund = await use_case.execute(
        user_id=current_user.id,
        ticket_id=ticket_id,
        reason=request.reason,
        refund_amount=request.refund_amount,
    )
    return RefundResponse.from_entity(refund)


@router.get('')
@Logger.io
async def refund_history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: CurrentUser = Depends(get_current_user),
    use_case: RefundHistoryUseCase = Depends(RefundHistoryUseCase.depends),
) -> RefundListResponse:
    result = await use_case.execute(user_id=current_user.id, page=page, limit=limit)
    return RefundListResponse.from_page(result)


@router.get('/pending')
@Logger.io
async def pending_refunds(
    current_user: CurrentUser = Depends(require_organizer_or_admin),
    use_case: PendingRefundsUseCase = Depends(PendingRefundsUseCase.depends),
) -> List[RefundResponse]:
    refunds = await use_case.execute(
        moderator_id=current_user.id, is_admin=RoleAuthStrategy.is_admin(current_user)
    )
    return [RefundResponse.from_entity(r) for r in refunds]


@router.get('/stats')
@Logger.io
async def refund_stats(
    current_user: CurrentUser = Depends(require_organizer_or_admin),
    use_case: RefundStatsUseCase = Depends(RefundStatsUseCase.depends),
) -> RefundStatsResponse:
    stats = await use_case.execute(
        moderator_id=current_user.id, is_admin=RoleAuthStrategy.is_admin(current_user)
    )
    return RefundStatsResponse.from_stats(stats)


@router.post('/{refund_id}/approve')
@Logger.io
async def approve_refund(
    refund_id: UUID,
    current_user: CurrentUser = Depends(require_organizer_or_admin),
    use_case: ApproveRefundUseCase = Depends(ApproveRefundUseCase.depends),
) -> RefundResponse:
    decision = await use_case.execute(
        approver_id=current_user.id,
        refund_id=refund_id,
        is_admin=RoleAuthStrategy.is_admin(current_user),
    )
    return RefundResponse.from_entity(decision.refund)


@router.post('/{refund_id}/reject')
@Logger.io
async def reject_refund(
    refund_id: UUID,
    request: RejectRefundRequest,
    current_user: CurrentUser = Depends(require_organizer_or_admin),
    use_case: RejectRefundUseCase = Depends(RejectRefundUseCase.depends),
) -> RefundResponse:
    decision = await use_case.execute(
        rejector_id=current_user.id,
        refund_id=refund_id,
        rejection_reason=request.rejection_reason,
        is_admin=RoleAuthStrategy.is_admin(current_user),
    )
    return RefundResponse.from_entity(decision.refund)
