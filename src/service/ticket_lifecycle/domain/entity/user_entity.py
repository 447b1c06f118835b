from enum import StrEnum
from uuid import UUID

import attrs


class UserRole(StrEnum):
    CUSTOMER = 'customer'
    ORGANIZER = 'organizer'
    ADMIN = 'admin'


@attrs.frozen
class CurrentUser:
    """Authenticated caller rebuilt from the bearer token; users live in the auth service."""

    id: UUID
    email: str
    role: UserRole = UserRole.CUSTOMER

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ORGANIZER, UserRole.ADMIN)
