"""Domain error taxonomy shared by routers and services."""

from __future__ import annotations

from typing import Any, Dict, Optional


class AssemblyGuideError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str, *, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"detail": self.message, **self.extra}


class ValidationError(AssemblyGuideError):
    status_code = 400


class NotFoundError(AssemblyGuideError):
    """Unknown resource, or one owned by another company."""

    status_code = 404


class ConflictError(AssemblyGuideError):
    status_code = 409


class QuotaExceededError(AssemblyGuideError):
    status_code = 403

    def __init__(self, current_count: int, limit: int, plan: Optional[str] = None):
        plan_label = f"Your {plan} plan" if plan else "Your plan"
        super().__init__(
            f"SKU limit reached. {plan_label} allows {limit} active SKUs. Upgrade to add more.",
            extra={"current_count": current_count, "limit": limit},
        )
        self.current_count = current_count
        self.limit = limit


class PipelineStageError(AssemblyGuideError):
    """Raised inside the ingestion pipeline; converted to SKU status 'error'."""

    stage = "pipeline"


class ExtractionError(PipelineStageError):
    stage = "extraction"


class MediaGenerationError(PipelineStageError):
    stage = "media_generation"


class CodeGenerationError(PipelineStageError):
    stage = "code_generation"


class NotificationError(AssemblyGuideError):
    """Delivery failure for a best-effort notification. Logged, never propagated."""
