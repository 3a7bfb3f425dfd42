"""SKU ingestion pipeline: processing -> live | error.

Runs after the create request has already returned. Stages are strictly
sequential: step extraction, video generation, QR generation, commit, then a
best-effort ready notification. Outcomes are only observable by polling the
SKU status.

No database session is held while the external stages run; a hung generator
stalls only its own SKU.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import settings
from database import async_session_maker
from generation.models import GeneratedCode, GeneratedVideo
from generation.qr import generate_qr_code
from generation.steps import extract_steps
from generation.video import generate_video
from models.sku import DERIVED_FIELDS, SKU_STATUS_ERROR, SKU_STATUS_LIVE, SKU_STATUS_PROCESSING, Sku
from models.user import User
from services.errors import ExtractionError, MediaGenerationError, PipelineStageError
from services.notifications import SkuReadyMessage, deliver_sku_ready_email, wants_sku_ready_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkuJob:
    """The SKU fields the generation stages read, detached from any session."""

    id: str
    sku_code: str
    product_name: str
    file_url: str
    file_type: str
    created_by: Optional[str]

    @classmethod
    def from_sku(cls, sku: Sku) -> "SkuJob":
        return cls(
            id=sku.id,
            sku_code=sku.sku_code,
            product_name=sku.product_name,
            file_url=sku.file_url,
            file_type=sku.file_type or "pdf",
            created_by=sku.created_by,
        )


async def _get_sku(db: AsyncSession, sku_id: str) -> Optional[Sku]:
    result = await db.execute(select(Sku).where(Sku.id == sku_id))
    return result.scalar_one_or_none()


async def _mark_error(db: AsyncSession, sku_id: str, exc: Exception) -> None:
    sku = await _get_sku(db, sku_id)
    if not sku:
        return
    stage = exc.stage if isinstance(exc, PipelineStageError) else "unexpected"
    sku.status = SKU_STATUS_ERROR
    for field in DERIVED_FIELDS:
        setattr(sku, field, None)
    sku.error_message = f"{stage}: {exc}"[:1000]
    sku.updated_at = datetime.now(timezone.utc)
    await db.commit()


async def _load_job(sku_id: str) -> tuple[Optional[SkuJob], Optional[str]]:
    """Return (job, None) for a processing SKU, else (None, current status or None)."""
    async with async_session_maker() as db:
        sku = await _get_sku(db, sku_id)
        if not sku:
            logger.error(f"SKU record {sku_id} not found; aborting generation")
            return None, None
        if sku.status != SKU_STATUS_PROCESSING:
            logger.warning(f"SKU {sku_id} is already '{sku.status}'; skipping generation")
            return None, sku.status
        return SkuJob.from_sku(sku), None


async def _run_stages(job: SkuJob) -> tuple[GeneratedVideo, GeneratedCode]:
    logger.info(f"Starting generation for SKU {job.id} ({job.sku_code})")
    steps = await asyncio.to_thread(
        extract_steps,
        job.file_url,
        job.file_type,
        settings.OPENAI_API_KEY,
        settings.STEP_EXTRACTION_MODEL,
    )
    if not steps:
        raise ExtractionError("No assembly steps found in instruction file")
    logger.info(f"Extracted {len(steps)} steps for SKU {job.id}")

    video = await generate_video(job.id, job.sku_code, job.product_name, steps, settings)
    if video.step_count != len(steps):
        raise MediaGenerationError(
            f"Video step count {video.step_count} does not match {len(steps)} extracted steps"
        )
    logger.info(f"Video ready for SKU {job.id}: {video.duration_seconds}s")

    code = await asyncio.to_thread(generate_qr_code, job.id, job.sku_code, settings)
    return video, code


async def _commit_live(job: SkuJob, video: GeneratedVideo, code: GeneratedCode) -> Optional[str]:
    """Persist all derived fields and flip to live in one commit."""
    async with async_session_maker() as db:
        sku = await _get_sku(db, job.id)
        if not sku:
            logger.warning(f"SKU {job.id} was deleted during generation; discarding results")
            return None
        if sku.status != SKU_STATUS_PROCESSING:
            logger.warning(f"SKU {job.id} moved to '{sku.status}' during generation; discarding results")
            return sku.status
        try:
            sku.status = SKU_STATUS_LIVE
            sku.video_url = video.video_url
            sku.video_duration = video.duration_seconds
            sku.step_count = video.step_count
            sku.qr_code_url = code.qr_code_url
            sku.qr_target_url = code.qr_target_url
            sku.error_message = None
            sku.updated_at = datetime.now(timezone.utc)
            await db.commit()
        except Exception as e:
            logger.error(f"Committing SKU {job.id} failed: {e}")
            await db.rollback()
            await _mark_error(db, job.id, e)
            return SKU_STATUS_ERROR
    return SKU_STATUS_LIVE


async def _notify_ready(job: SkuJob, code: GeneratedCode) -> bool:
    """Send the ready email. Failures are logged and never touch SKU state."""
    try:
        if not job.created_by:
            logger.info(f"SKU {job.id} has no owning user; skipping ready notification")
            return False
        async with async_session_maker() as db:
            result = await db.execute(select(User).where(User.id == job.created_by))
            user = result.scalar_one_or_none()
            if not user:
                logger.warning(f"Owner {job.created_by} of SKU {job.id} not found; skipping ready notification")
                return False
            if not await wants_sku_ready_email(user.id, db):
                logger.info(f"User {user.id} opted out of SKU ready emails")
                return False
            recipient = user.email
        return await deliver_sku_ready_email(
            SkuReadyMessage(
                to=recipient,
                product_name=job.product_name,
                sku_code=job.sku_code,
                qr_code_url=code.qr_code_url,
                qr_target_url=code.qr_target_url,
            ),
            settings,
        )
    except Exception as exc:
        logger.error(f"Ready notification for SKU {job.id} failed: {exc}")
        return False


async def process_sku_generation(sku_id: str) -> Optional[str]:
    """
    Background task driving one SKU from 'processing' to a terminal state.

    Returns the final status, or None when the SKU no longer exists.
    """
    job, current_status = await _load_job(sku_id)
    if job is None:
        return current_status

    try:
        video, code = await _run_stages(job)
    except Exception as e:
        logger.error(f"Generation for SKU {sku_id} failed: {e}")
        async with async_session_maker() as db:
            await _mark_error(db, sku_id, e)
        return SKU_STATUS_ERROR

    final_status = await _commit_live(job, video, code)
    if final_status != SKU_STATUS_LIVE:
        return final_status

    logger.info(f"SKU {job.sku_code} processed successfully")
    await _notify_ready(job, code)
    return SKU_STATUS_LIVE


def process_sku_generation_job(sku_id: str) -> Optional[str]:
    """Synchronous RQ entrypoint."""
    return asyncio.run(process_sku_generation(sku_id))
