"""SKU generation dispatch: in-process background task or durable Redis/RQ queue."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import BackgroundTasks
from redis import Redis
from rq import Queue
from rq.job import Job
from sqlalchemy.future import select

from config import settings
from database import async_session_maker
from models.sku import SKU_STATUS_ERROR, SKU_STATUS_PROCESSING, Sku
from services.ingestion import process_sku_generation

logger = logging.getLogger(__name__)

SKU_QUEUE_NAME = "sku_generation"


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL)


def get_sku_queue() -> Queue:
    """Return the configured SKU generation queue."""
    return Queue(
        name=SKU_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=1800,
    )


def enqueue_sku_generation_job(sku_id: str) -> Job:
    """Enqueue a SKU generation job. Failed generations are not retried."""
    queue = get_sku_queue()
    return queue.enqueue(
        "services.ingestion.process_sku_generation_job",
        sku_id,
        job_id=f"sku:{sku_id}",
        job_timeout=1800,
        result_ttl=86400,
        failure_ttl=86400,
    )


def dispatch_sku_generation(sku_id: str, background_tasks: BackgroundTasks) -> str:
    """Schedule the pipeline for a freshly created SKU and return the dispatch mode.

    Runs after the response is sent; the caller never awaits the outcome.
    """
    if settings.SKU_QUEUE_ENABLED:
        try:
            job = enqueue_sku_generation_job(sku_id)
            logger.info("Enqueued SKU %s as job %s", sku_id, job.id)
            return "queue"
        except Exception as exc:
            logger.warning("SKU queue unavailable (%s); running SKU %s in-process", exc, sku_id)

    background_tasks.add_task(process_sku_generation, sku_id)
    return "background"


async def recover_stalled_skus(max_age_minutes: int) -> int:
    """Mark SKUs stuck in 'processing' longer than max_age_minutes as 'error'."""
    if max_age_minutes <= 0:
        return 0
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=max_age_minutes)
    async with async_session_maker() as db:
        result = await db.execute(
            select(Sku).where(
                Sku.status == SKU_STATUS_PROCESSING,
                Sku.created_at < cutoff,
            )
        )
        skus = result.scalars().all()
        for sku in skus:
            sku.status = SKU_STATUS_ERROR
            sku.error_message = "stalled: generation was interrupted. Upload the SKU again."
        if skus:
            await db.commit()
        return len(skus)
