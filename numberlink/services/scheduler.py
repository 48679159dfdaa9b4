# numberlink/services/scheduler.py
"""
Background jobs. One job today: evict stale verification cache entries
every VERIFICATION_SWEEP_MINUTES so the cache stays bounded even when
nobody reads it. Started/stopped by the app lifespan.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from numberlink.config import settings
from numberlink.services.verification_cache import VerificationCache
from numberlink.utils.logger import get_logger

logger = get_logger(__name__)

SWEEP_JOB_ID = "verification_cache_sweep"


def sweep_verification_cache(cache: VerificationCache) -> int:
    try:
        return cache.sweep_expired()
    except Exception:
        logger.exception("Verification cache sweep failed")
        return 0


def build_scheduler(cache: VerificationCache) -> AsyncIOScheduler:
    sched = AsyncIOScheduler(job_defaults={"coalesce": True, "max_instances": 1})
    sched.add_job(
        sweep_verification_cache,
        trigger="interval",
        minutes=settings.VERIFICATION_SWEEP_MINUTES,
        args=[cache],
        id=SWEEP_JOB_ID,
        replace_existing=True,
        misfire_grace_time=300,
    )
    logger.info(f"Scheduler configured: cache sweep every {settings.VERIFICATION_SWEEP_MINUTES} min")
    return sched
