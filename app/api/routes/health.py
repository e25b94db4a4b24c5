from __future__ import annotations

import asyncio
from typing import Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.workers.celery_app import celery_app

router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)

Check = dict[str, Any]


def _failed(dependency: str, exc: Exception | None = None, *, reason: str | None = None) -> Check:
    # Raw driver errors can carry connection strings, so only the dependency name leaves.
    logger.warning(
        "health_check_failed",
        dependency=dependency,
        error_type=type(exc).__name__ if exc is not None else None,
        reason=reason,
    )
    return {"status": "failed", "error": f"{dependency}_unavailable"}


async def _check_database() -> Check:
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        return _failed("database", exc)
    return {"status": "ok"}


async def _check_redis() -> Check:
    client = Redis.from_url(get_settings().redis_url)
    try:
        pong = await client.ping()
    except Exception as exc:
        return _failed("redis", exc)
    finally:
        await client.aclose()
    if pong is not True:
        return _failed("redis", reason="unexpected_ping_response")
    return {"status": "ok"}


def _check_celery_worker_sync() -> Check:
    try:
        inspector = celery_app.control.inspect(timeout=1.0)
        if inspector is None:
            return _failed("celery", reason="inspector_unavailable")
        replies = inspector.ping() or {}
    except Exception as exc:
        return _failed("celery", exc)
    if not replies:
        return _failed("celery", reason="no_workers")
    return {"status": "ok", "workers": len(replies)}


async def _check_celery_worker() -> Check:
    return await asyncio.to_thread(_check_celery_worker_sync)


def _checks_response(checks: dict[str, Check], *, ok_label: str, failed_label: str) -> JSONResponse:
    healthy = all(check.get("status") == "ok" for check in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": ok_label if healthy else failed_label, "checks": checks},
    )


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "live"}


@router.get("/health")
async def health() -> JSONResponse:
    database, redis, celery = await asyncio.gather(
        _check_database(),
        _check_redis(),
        _check_celery_worker(),
    )
    return _checks_response(
        {"database": database, "redis": redis, "celery": celery},
        ok_label="ok",
        failed_label="degraded",
    )


@router.get("/ready")
async def ready() -> JSONResponse:
    # Workers only drain scheduled jobs; the API can serve without them.
    database, redis = await asyncio.gather(_check_database(), _check_redis())
    return _checks_response(
        {"database": database, "redis": redis},
        ok_label="ready",
        failed_label="not_ready",
    )
