from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from celery.schedules import crontab

from app.core.config import Settings, get_settings

JOB_ACTIVITY_ROLLOVER = "referral-activity-rollover"
JOB_COMPLETION = "referral-completion"
JOB_REWARD_EXPIRATION = "referral-reward-expiration"


@dataclass(frozen=True, slots=True)
class ReferralJob:
    name: str
    task: str
    hour: int
    minute: int
    # Celery numbering, 0 is Sunday; None runs every day.
    day_of_week: int | None
    cadence: str
    description: str
    enabled_setting: str

    def schedule(self) -> crontab:
        if self.day_of_week is None:
            return crontab(hour=self.hour, minute=self.minute)
        return crontab(hour=self.hour, minute=self.minute, day_of_week=self.day_of_week)

    def next_run_after(self, now_utc: datetime) -> datetime:
        candidate = now_utc.astimezone(timezone.utc).replace(
            hour=self.hour,
            minute=self.minute,
            second=0,
            microsecond=0,
        )
        if candidate <= now_utc:
            candidate += timedelta(days=1)
        if self.day_of_week is not None:
            # datetime.isoweekday() gives Sunday as 7.
            while candidate.isoweekday() % 7 != self.day_of_week:
                candidate += timedelta(days=1)
        return candidate


REFERRAL_JOBS: tuple[ReferralJob, ...] = (
    ReferralJob(
        name=JOB_ACTIVITY_ROLLOVER,
        task="app.workers.tasks.referrals.run_referral_activity_rollover",
        hour=1,
        minute=0,
        day_of_week=None,
        cadence="daily 01:00 UTC",
        description="Counts yesterday's activity seen only through last_active_at",
        enabled_setting="referral_activity_rollover_enabled",
    ),
    ReferralJob(
        name=JOB_COMPLETION,
        task="app.workers.tasks.referrals.run_referral_completion",
        hour=2,
        minute=0,
        day_of_week=None,
        cadence="daily 02:00 UTC",
        description="Completes referrals past the active-days threshold and activates rewards",
        enabled_setting="referral_completion_enabled",
    ),
    ReferralJob(
        name=JOB_REWARD_EXPIRATION,
        task="app.workers.tasks.referrals.run_referral_reward_expiration",
        hour=3,
        minute=0,
        day_of_week=0,
        cadence="weekly Sunday 03:00 UTC",
        description="Expires rewards older than the maximum reward age",
        enabled_setting="referral_expiration_enabled",
    ),
)
REFERRAL_JOBS_BY_NAME: dict[str, ReferralJob] = {job.name: job for job in REFERRAL_JOBS}


def is_referral_job_enabled(job: ReferralJob, settings: Settings) -> bool:
    return bool(settings.referral_jobs_enabled) and bool(getattr(settings, job.enabled_setting))


def configure_referral_schedule(celery_app, settings: Settings | None = None) -> list[str]:
    resolved_settings = settings or get_settings()
    celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
    registered: list[str] = []
    for job in REFERRAL_JOBS:
        if not is_referral_job_enabled(job, resolved_settings):
            celery_app.conf.beat_schedule.pop(job.name, None)
            continue
        celery_app.conf.beat_schedule[job.name] = {
            "task": job.task,
            "schedule": job.schedule(),
            "options": {"queue": "q_referrals"},
        }
        registered.append(job.name)
    return registered


def build_referral_jobs_status(
    *,
    now_utc: datetime,
    settings: Settings | None = None,
) -> dict[str, object]:
    resolved_settings = settings or get_settings()
    jobs: list[dict[str, object]] = []
    for job in REFERRAL_JOBS:
        enabled = is_referral_job_enabled(job, resolved_settings)
        jobs.append(
            {
                "name": job.name,
                "cadence": job.cadence,
                "description": job.description,
                "enabled": enabled,
                "next_run": job.next_run_after(now_utc).isoformat() if enabled else None,
            }
        )
    return {
        "enabled": bool(resolved_settings.referral_jobs_enabled),
        "environment": resolved_settings.app_env,
        "jobs": jobs,
    }
