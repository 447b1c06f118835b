from typing import Any, Callable, Coroutine

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.responses import Response

from src.platform.exception.exceptions import (
    CustomBaseError,
    FieldError,
    InternalError,
    ValidationError,
)
from src.platform.logging.loguru_io import Logger


# Type alias for exception handlers (compatible with Starlette's expected signature)
ExceptionHandler = Callable[[Request, Exception], Coroutine[Any, Any, Response]]


def _error_response(error: CustomBaseError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={'detail': error.message, 'error': error.to_dict()},
    )


async def custom_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, CustomBaseError) else InternalError(str(exc))
    return _error_response(error)


async def value_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(ValidationError(str(exc)))


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    raw_errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    field_errors = [
        FieldError('.'.join(str(part) for part in err.get('loc', ()) if part != 'body'), err['msg'])
        for err in raw_errors
    ]
    return _error_response(ValidationError('Request validation failed', errors=field_errors))


async def general_500_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    Logger.base.exception(f'💥 [HTTP] Unhandled error on {request.url.path}: {exc}')
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            'detail': 'Internal server error',
            'error': InternalError('Internal server error').to_dict(),
        },
    )


# Exception handler mapping
EXCEPTION_HANDLERS: dict[type[Exception], ExceptionHandler] = {
    CustomBaseError: custom_error_handler,
    ValueError: value_error_handler,
    RequestValidationError: validation_error_handler,
    Exception: general_500_exception_handler,  # Catch-all for unhandled exceptions
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
