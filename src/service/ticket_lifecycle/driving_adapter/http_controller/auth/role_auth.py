from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import Cookie, Depends, Header
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.exception.exceptions import ForbiddenError
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser, UserRole
from src.service.ticket_lifecycle.driving_adapter.http_controller.auth.jwt_auth import JwtAuth


class RoleAuthStrategy:
    @staticmethod
    def is_admin(user: CurrentUser) -> bool:
        return user.role == UserRole.ADMIN

    @staticmethod
    def is_operator(user: CurrentUser) -> bool:
        """Staff may record offline payments and act on other users' orders."""
        return user.is_staff


@inject
async def get_current_user(
    jwt_auth: JwtAuth = Depends(Provide[Container.jwt_auth]),
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Cookie(None, alias='access_token'),
) -> CurrentUser:
    """Bearer header first, cookie as fallback for browser clients."""
    if authorization and authorization.lower().startswith('bearer '):
        token = authorization[7:].strip()
    return jwt_auth.get_current_user_info_from_jwt(token)


async def require_organizer_or_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(
        'auth.require_organizer_or_admin',
        attributes={
            'user.id': str(current_user.id),
            'user.role': current_user.role.value,
        },
    ):
        if not RoleAuthStrategy.is_operator(current_user):
            raise ForbiddenError('Only organizers or admins can perform this action')
        return current_user

