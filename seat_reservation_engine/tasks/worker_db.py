"""
Database access for Celery workers.

Each task runs its coroutine on a fresh event loop, and asyncpg connections
cannot cross loops, so every run gets its own engine.
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..database import create_database_engine, create_session_factory

T = TypeVar("T")


async def with_session_factory(work: Callable[[async_sessionmaker[AsyncSession]], Awaitable[T]]) -> T:
    engine = create_database_engine()
    try:
        return await work(create_session_factory(engine))
    finally:
        await engine.dispose()


def run_in_new_loop(coro: Awaitable[Any]) -> Any:
    """Run a coroutine to completion on a private event loop."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()
        asyncio.set_event_loop(None)
