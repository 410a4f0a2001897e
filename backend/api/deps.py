"""
OptiPlan API Dependencies

Dependency injection for DB sessions and the optimizer process runner.
"""

from collections.abc import AsyncGenerator

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import DomainError
from db.session import AsyncSessionLocal
from optimization.runner import OptimizerRunner, build_runner


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def get_optimizer_runner() -> OptimizerRunner:
    """Subprocess runner built from settings. Overridden in tests."""
    return build_runner(get_settings())


def http_error(exc: DomainError) -> HTTPException:
    """Map a domain error onto the matching HTTP status."""
    return HTTPException(status_code=exc.status_code, detail=str(exc))
