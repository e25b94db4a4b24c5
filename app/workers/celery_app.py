from celery import Celery

from app.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "referral_ledger",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.workers.tasks.referrals",
    ],
)

celery_app.conf.update(
    task_default_queue="q_referrals",
    task_routes={"app.workers.tasks.referrals.*": {"queue": "q_referrals"}},
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    result_expires=24 * 60 * 60,
    timezone="UTC",
    enable_utc=True,
    beat_schedule={},
)


@celery_app.task(name="app.workers.celery_app.ping")
def ping() -> str:
    return "pong"
