from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from app.db.session import dispose_engine

T = TypeVar("T")

logger = structlog.get_logger(__name__)


async def _run_with_fresh_db_pool(awaitable: Awaitable[T], *, job_name: str) -> T:
    # Each asyncio.run gets a new loop; pooled asyncpg connections are bound to the old one.
    await dispose_engine()
    with structlog.contextvars.bound_contextvars(job=job_name):
        try:
            return await awaitable
        except Exception:
            logger.exception("referral_job_failed")
            raise
        finally:
            await dispose_engine()


def run_async_job(awaitable: Awaitable[T], *, job_name: str) -> T:
    return asyncio.run(_run_with_fresh_db_pool(awaitable, job_name=job_name))
