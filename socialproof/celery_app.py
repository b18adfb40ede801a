import logging

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_ready
from dotenv import load_dotenv

from socialproof.core.config import get_settings
from socialproof.core.log_config import configure_logging

load_dotenv()

settings = get_settings()
configure_logging(settings.log_level)
# Missing secrets must stop the worker before it accepts any task
settings.validate()

logger = logging.getLogger(__name__)

celery_app = Celery(
    "socialproof",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["socialproof.tasks.social_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

celery_app.conf.beat_schedule = {
    # Tokens first, so the data sync runs with fresh credentials
    "refresh-expiring-tokens": {
        "task": "refresh_expiring_tokens",
        "schedule": crontab(hour=2, minute=0),
    },
    "sync-due-accounts": {
        "task": "sync_due_accounts",
        "schedule": crontab(hour=3, minute=0),
    },
}

logger.info("[CELERY] Beat schedule registered: %s", ", ".join(sorted(celery_app.conf.beat_schedule)))


@worker_ready.connect
def schedule_startup_catch_up(sender=None, **kwargs):
    """Catch up on accounts that went stale while no worker was running."""
    logger.info("[CELERY] Startup catch-up in %s seconds", settings.startup_warmup_seconds)
    celery_app.send_task("startup_catch_up_sync", countdown=settings.startup_warmup_seconds)
