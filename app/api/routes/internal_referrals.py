from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from app.core.config import get_settings
from app.services.internal_auth import InternalAccessDenied, check_internal_access
from app.workers.tasks import referrals as referral_tasks
from app.workers.tasks.referrals_schedule import (
    JOB_REWARD_EXPIRATION,
    REFERRAL_JOBS_BY_NAME,
    build_referral_jobs_status,
)

router = APIRouter(tags=["internal", "referrals"])
logger = structlog.get_logger(__name__)


class ReferralJobStatusResponse(BaseModel):
    name: str
    cadence: str
    description: str
    enabled: bool
    next_run: datetime | None = None


class ReferralJobsStatusResponse(BaseModel):
    enabled: bool
    environment: str
    jobs: list[ReferralJobStatusResponse]


class ReferralJobRunRequest(BaseModel):
    reward_ids: list[UUID] | None = Field(default=None, max_length=1000)


class ReferralJobRunResponse(BaseModel):
    job: str
    started_at: datetime
    finished_at: datetime
    result: dict[str, int]


def _assert_internal_access(request: Request) -> None:
    settings = get_settings()
    try:
        check_internal_access(
            request,
            expected_token=settings.internal_api_token,
            allowlist=settings.internal_api_allowlist,
            trusted_proxies=settings.internal_api_trusted_proxies,
        )
    except InternalAccessDenied as exc:
        logger.warning(
            "internal_referrals_auth_failed",
            reason=exc.reason,
            client_ip=exc.client_ip,
        )
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"}) from exc


@router.get("/internal/referrals/jobs", response_model=ReferralJobsStatusResponse)
async def get_referral_jobs_status(request: Request) -> ReferralJobsStatusResponse:
    _assert_internal_access(request)
    status = build_referral_jobs_status(now_utc=datetime.now(timezone.utc))
    return ReferralJobsStatusResponse.model_validate(status)


@router.post("/internal/referrals/jobs/{job_name}/run", response_model=ReferralJobRunResponse)
async def run_referral_job(
    job_name: str,
    request: Request,
    payload: ReferralJobRunRequest | None = None,
) -> ReferralJobRunResponse:
    _assert_internal_access(request)
    if job_name not in REFERRAL_JOBS_BY_NAME:
        raise HTTPException(status_code=404, detail={"code": "E_REFERRAL_JOB_NOT_FOUND"})

    reward_ids = payload.reward_ids if payload is not None else None
    if reward_ids is not None and job_name != JOB_REWARD_EXPIRATION:
        raise HTTPException(status_code=422, detail={"code": "E_REFERRAL_JOB_ARGS_INVALID"})

    started_at = datetime.now(timezone.utc)
    logger.info("referral_job_manual_trigger", job=job_name)
    if reward_ids is not None:
        result = await referral_tasks.run_referral_reward_expiration_async(
            reward_ids=[str(reward_id) for reward_id in reward_ids]
        )
    else:
        result = await referral_tasks.REFERRAL_JOB_RUNNERS[job_name]()
    return ReferralJobRunResponse(
        job=job_name,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
        result=result,
    )
