"""
Bearer token verification

Tokens are minted by the external auth service; this side only checks the
signature and rebuilds the caller from the claims (no DB query).
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from uuid import UUID

import jwt

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import AuthenticationError
from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser, UserRole


class JwtAuth:
    def __init__(self) -> None:
        self.secret = settings.SECRET_KEY.get_secret_value()
        self.algorithm = settings.ALGORITHM
        self.token_expire_days = 7

    def create_jwt_token(self, user: CurrentUser) -> str:
        """Used by tests and local tooling to act as the auth service."""
        payload = {
            'sub': str(user.id),
            'exp': datetime.now(timezone.utc) + timedelta(days=self.token_expire_days),
            'iat': datetime.now(timezone.utc),
            'user_id': str(user.id),
            'email': user.email,
            'role': user.role.value,
        }

        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_jwt_token(self, token: str) -> Dict:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
            return payload
        except jwt.PyJWTError:
            raise AuthenticationError('Invalid token') from None

    def get_current_user_info_from_jwt(self, token: Optional[str]) -> CurrentUser:
        if not token:
            raise AuthenticationError('Not authenticated')

        payload = self.decode_jwt_token(token)

        user_id = payload.get('user_id') or payload.get('sub')
        email = payload.get('email')
        role = payload.get('role')
        if not user_id or not email or not role:
            raise AuthenticationError('Invalid token')

        try:
            return CurrentUser(id=UUID(str(user_id)), email=email, role=UserRole(role))
        except ValueError:
            raise AuthenticationError('Invalid token') from None
