import asyncio
import logging
from typing import List, Optional

import httpx

from config import Settings
from services.errors import MediaGenerationError
from .models import GeneratedVideo, InstructionStep

logger = logging.getLogger(__name__)

FINISHED_STATUSES = {"completed", "done", "succeeded"}
FAILED_STATUSES = {"failed", "error", "cancelled"}


def estimate_duration_seconds(step_count: int, seconds_per_step: int) -> int:
    """Placeholder duration rule: a fixed number of seconds per step."""
    return max(int(step_count), 1) * max(int(seconds_per_step), 1)


def build_script(steps: List[InstructionStep]) -> str:
    return "\n\n".join(f"Step {step.step_number}: {step.description}" for step in steps)


async def _render_with_service(
    product_name: str,
    steps: List[InstructionStep],
    config: Settings,
) -> GeneratedVideo:
    base_url = config.VIDEO_SERVICE_URL.rstrip("/")
    headers = {"Authorization": f"Bearer {config.VIDEO_SERVICE_API_KEY}"} if config.VIDEO_SERVICE_API_KEY else {}

    async with httpx.AsyncClient(base_url=base_url, headers=headers, timeout=30.0) as client:
        create_resp = await client.post(
            "/videos",
            json={"title": f"{product_name} Assembly Guide", "script": build_script(steps)},
        )
        create_resp.raise_for_status()
        video_id = str(create_resp.json().get("id") or "")
        if not video_id:
            raise MediaGenerationError("Video service did not return a video id")

        # No deadline here: a stalled render leaves the SKU in 'processing'.
        while True:
            await asyncio.sleep(max(float(config.VIDEO_POLL_INTERVAL_SECONDS), 0.0))
            status_resp = await client.get(f"/videos/{video_id}")
            status_resp.raise_for_status()
            payload = status_resp.json()
            status = str(payload.get("status", "")).lower()
            if status in FINISHED_STATUSES:
                break
            if status in FAILED_STATUSES:
                raise MediaGenerationError(f"Video render {video_id} ended with status '{status}'")

    video_url = str(payload.get("video_url") or "")
    if not video_url:
        raise MediaGenerationError(f"Video render {video_id} finished without a video_url")

    duration = int(float(payload.get("duration") or 0))
    if duration <= 0:
        duration = estimate_duration_seconds(len(steps), config.SECONDS_PER_STEP)

    return GeneratedVideo(video_url=video_url, duration_seconds=duration, step_count=len(steps))


async def generate_video(
    sku_id: str,
    sku_code: str,
    product_name: str,
    steps: List[InstructionStep],
    config: Settings,
) -> GeneratedVideo:
    """
    Generate the assembly video for a SKU.

    Uses the external video service when VIDEO_SERVICE_URL is configured,
    otherwise returns a placeholder CDN reference.
    """
    if not steps:
        raise MediaGenerationError("Cannot generate a video without steps")

    if config.VIDEO_SERVICE_URL:
        try:
            return await _render_with_service(product_name, steps, config)
        except MediaGenerationError:
            raise
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"Video service error for SKU {sku_code}: {exc}")
            raise MediaGenerationError(f"Video service error: {exc}") from exc

    logger.warning("Using placeholder video generation for SKU %s", sku_code)
    delay: Optional[float] = config.VIDEO_PLACEHOLDER_DELAY_SECONDS
    if delay and delay > 0:
        await asyncio.sleep(delay)

    return GeneratedVideo(
        video_url=f"{config.VIDEO_CDN_BASE_URL.rstrip('/')}/{sku_id}/assembly.mp4",
        duration_seconds=estimate_duration_seconds(len(steps), config.SECONDS_PER_STEP),
        step_count=len(steps),
    )
