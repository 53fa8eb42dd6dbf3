"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_batch.services import OverrideService, PayrollRunService


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the application."""
    return request.app.state.session_factory


SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


async def get_db_session(factory: SessionFactory) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_payroll_run_service(factory: SessionFactory) -> PayrollRunService:
    return PayrollRunService(factory)


def get_override_service(factory: SessionFactory) -> OverrideService:
    return OverrideService(factory)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
RunService = Annotated[PayrollRunService, Depends(get_payroll_run_service)]
Overrides = Annotated[OverrideService, Depends(get_override_service)]
