"""
Shared plumbing for payment gateway adapters

- gateway_retrying: bounded exponential backoff for intent creation
- observe_gateway_call: latency and outcome metrics per call
- translate_http_errors / raise_for_gateway_status: map transport and HTTP
  failures onto GatewayTransientError and GatewayFatalError
"""

from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
import time
from typing import TypeVar

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.platform.config.core_setting import settings
from src.platform.exception.exceptions import GatewayFatalError, GatewayTransientError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.lifecycle_metrics import metrics


_T = TypeVar('_T')


def gateway_retrying() -> AsyncRetrying:
    return AsyncRetrying(
        stop=stop_after_attempt(settings.GATEWAY_MAX_ATTEMPTS),
        wait=wait_exponential(
            multiplier=settings.GATEWAY_BACKOFF_BASE_SECONDS,
            max=settings.GATEWAY_BACKOFF_MAX_SECONDS,
        ),
        retry=retry_if_exception_type(GatewayTransientError),
        reraise=True,
    )


async def call_with_retry(call: Callable[[], Awaitable[_T]]) -> _T:
    async for attempt in gateway_retrying():
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                Logger.base.warning(
                    f'🔁 [GATEWAY] Retrying call (attempt {attempt.retry_state.attempt_number})'
                )
            return await call()
    raise GatewayTransientError('Gateway retry budget exhausted')  # pragma: no cover


class CallOutcome:
    __slots__ = ('result',)

    def __init__(self) -> None:
        self.result = 'error'


@contextmanager
def observe_gateway_call(*, gateway: str, operation: str) -> Iterator[CallOutcome]:
    outcome = CallOutcome()
    started = time.perf_counter()
    try:
        yield outcome
    finally:
        metrics.record_gateway_call(
            gateway=gateway,
            operation=operation,
            result=outcome.result,
            duration=time.perf_counter() - started,
        )


@contextmanager
def translate_http_errors(*, gateway: str) -> Iterator[None]:
    try:
        yield
    except httpx.TransportError as e:
        raise GatewayTransientError(f'{gateway} unreachable: {type(e).__name__}') from e


def raise_for_gateway_status(response: httpx.Response, *, gateway: str) -> None:
    if response.status_code >= 500 or response.status_code == 429:
        raise GatewayTransientError(f'{gateway} responded {response.status_code}')
    if response.status_code >= 400:
        raise GatewayFatalError(f'{gateway} rejected the request ({response.status_code})')
