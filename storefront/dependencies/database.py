from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from storefront.backend.db import async_session_maker

async def get_db() -> AsyncIterator[AsyncSession]:
    async with async_session_maker() as session:
        yield session

def get_session_factory() -> async_sessionmaker:
    """
    Factory for operations that need a session per item (bulk extend).
    """
    return async_session_maker
