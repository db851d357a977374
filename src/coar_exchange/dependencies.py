"""FastAPI dependency injection providers."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from coar_exchange.context import ExchangeContext
from coar_exchange.errors.exceptions import ServiceDisabledError


async def get_db(request: Request) -> AsyncGenerator:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_context(request: Request) -> ExchangeContext:
    return request.app.state.context


def get_trace_id(request: Request) -> str:
    """Extract trace_id from request state (set by middleware)."""
    return getattr(request.state, "trace_id", "unknown")


def require_enabled(request: Request) -> None:
    """Reject inbox traffic while the exchange is switched off."""
    if not request.app.state.context.settings.enabled:
        raise ServiceDisabledError()


# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
Context = Annotated[ExchangeContext, Depends(get_context)]
TraceId = Annotated[str, Depends(get_trace_id)]
RequireEnabled = Depends(require_enabled)
