from typing import Any


class CustomBaseError(Exception):
    """Base class for all custom exceptions - controls logging behavior in @Logger.io"""

    kind = 'Internal'
    code = 'INTERNAL'

    def __init__(self, message: str, status_code: int) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {'kind': self.kind, 'code': self.code, 'message': self.message}


class FieldError:
    __slots__ = ('field', 'message')

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {'field': self.field, 'message': self.message}


class ValidationError(CustomBaseError):
    kind = 'ValidationError'
    code = 'VALIDATION_ERROR'

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        errors: list[FieldError] | None = None,
    ) -> None:
        super().__init__(message, 422)
        self.errors = list(errors or [])
        if field is not None:
            self.errors.append(FieldError(field, message))

    def to_dict(self) -> dict[str, Any]:
        return super().to_dict() | {'errors': [e.to_dict() for e in self.errors]}


class ForbiddenError(CustomBaseError):
    kind = 'Forbidden'
    code = 'FORBIDDEN'

    def __init__(self, message: str) -> None:
        super().__init__(message, 403)


class NotFoundError(CustomBaseError):
    kind = 'NotFound'
    code = 'NOT_FOUND'

    def __init__(self, message: str) -> None:
        super().__init__(message, 404)


class ConflictingStateError(CustomBaseError):
    """Precondition failed on a state row; carries the state the row is actually in."""

    kind = 'ConflictingState'
    code = 'CONFLICTING_STATE'

    def __init__(self, message: str, *, current_state: str | None = None) -> None:
        super().__init__(message, 409)
        self.current_state = current_state

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.current_state is not None:
            payload['current_state'] = self.current_state
        return payload


class InsufficientError(CustomBaseError):
    kind = 'Insufficient'
    code = 'INSUFFICIENT'

    def __init__(self, message: str) -> None:
        super().__init__(message, 409)


class ExpiredError(CustomBaseError):
    kind = 'Expired'
    code = 'EXPIRED'

    def __init__(self, message: str) -> None:
        super().__init__(message, 410)


class NotStartedError(ExpiredError):
    code = 'NOT_STARTED'


class AlreadyUsedError(CustomBaseError):
    kind = 'AlreadyUsed'
    code = 'ALREADY_USED'

    def __init__(self, message: str) -> None:
        super().__init__(message, 409)


class GatewayTransientError(CustomBaseError):
    kind = 'GatewayTransient'
    code = 'GATEWAY_TRANSIENT'

    def __init__(self, message: str) -> None:
        super().__init__(message, 503)


class GatewayFatalError(CustomBaseError):
    kind = 'GatewayFatal'
    code = 'GATEWAY_FATAL'

    def __init__(self, message: str) -> None:
        super().__init__(message, 502)


class InternalError(CustomBaseError):
    def __init__(self, message: str) -> None:
        super().__init__(message, 500)


class AuthenticationError(CustomBaseError):
    kind = 'Authentication'
    code = 'UNAUTHENTICATED'

    def __init__(self, message: str) -> None:
        super().__init__(message, 401)
