"""
Async helpers for running async code in synchronous contexts.

Celery tasks are synchronous functions, while the deployment lifecycle is written
against the async SQLAlchemy session. These helpers bridge the two.

Usage:
    from code_deployer.core.async_helpers import run_async, run_async_with_db

    result = run_async(my_async_function())

    async def my_db_operation(db: AsyncSession):
        ...

    result = run_async_with_db(my_db_operation)
"""
import asyncio
import logging
from typing import TypeVar, Callable, Awaitable

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _dispose_engine(loop: asyncio.AbstractEventLoop) -> None:
    """
    Dispose the global engine so new connections bind to the current loop.

    Pooled asyncpg connections created on a previous (now closed) loop can raise
    "Event loop is closed" while being discarded. Those errors are harmless, so
    pool loggers are silenced for the duration of the dispose.
    """
    from code_deployer.core.database import engine

    pool_loggers = [logging.getLogger(n) for n in ('sqlalchemy.pool', 'sqlalchemy.pool.impl')]
    prev_levels = [pl.level for pl in pool_loggers]
    for pl in pool_loggers:
        pl.setLevel(logging.CRITICAL)
    try:
        loop.run_until_complete(engine.dispose())
    except RuntimeError as e:
        if "Event loop is closed" not in str(e):
            raise
    finally:
        for pl, lv in zip(pool_loggers, prev_levels):
            pl.setLevel(lv)


def run_async(coro: Awaitable[T]) -> T:
    """
    Run an async coroutine in a new event loop.

    Each Celery task gets a fresh loop and a freshly disposed engine.

    Args:
        coro: The coroutine to execute

    Returns:
        The result of the coroutine

    Raises:
        Any exception raised by the coroutine
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    try:
        _dispose_engine(loop)
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()


def run_async_with_db(func: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """
    Run an async function with a database session.

    Args:
        func: Async function that takes a database session and returns a result

    Returns:
        The result of the function

    Raises:
        Any exception raised by the function

    Example:
        @celery_app.task
        def my_task(deployment_id: str):
            async def do_work(db: AsyncSession):
                return await deployment_service.execute_deployment(db, UUID(deployment_id))

            return run_async_with_db(do_work)
    """
    async def wrapper():
        from code_deployer.core.database import async_session_maker
        async with async_session_maker() as db:
            return await func(db)

    return run_async(wrapper())
