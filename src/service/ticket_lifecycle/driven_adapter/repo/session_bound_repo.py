from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession


class SessionBoundRepo:
    """
    Repositories run in one of two modes:
    - UoW mode: ``session`` is the unit of work's shared session; the UoW commits
    - Standalone mode: ``session_factory`` opens a short-lived session per call
    """

    def __init__(
        self,
        *,
        session: Optional[AsyncSession] = None,
        session_factory: Callable[..., AsyncContextManager[AsyncSession]] | None = None,
    ) -> None:
        self.session = session
        self.session_factory = session_factory

    @asynccontextmanager
    async def _get_session(self) -> AsyncIterator[AsyncSession]:
        if self.session is not None:
            yield self.session
        elif self.session_factory is not None:
            async with self.session_factory() as session:
                yield session
        else:
            raise RuntimeError('No session or session_factory available')
