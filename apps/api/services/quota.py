"""Live-SKU quota guard and plan usage helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from config import UNLIMITED_SKU_LIMIT, Settings, settings
from models.company import Company
from models.sku import SKU_STATUS_LIVE, Sku
from services.errors import QuotaExceededError


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    current_count: int
    limit: int

    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED_SKU_LIMIT


def check_quota(sku_limit: int, live_count: int) -> QuotaDecision:
    """Decide whether one more SKU fits under the plan limit."""
    limit = int(sku_limit)
    count = max(int(live_count), 0)
    if limit == UNLIMITED_SKU_LIMIT:
        return QuotaDecision(allowed=True, current_count=count, limit=limit)
    return QuotaDecision(allowed=count < limit, current_count=count, limit=limit)


async def count_live_skus(company_id: str, db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count(Sku.id)).where(
            Sku.company_id == company_id,
            Sku.status == SKU_STATUS_LIVE,
        )
    )
    return int(result.scalar() or 0)


async def enforce_sku_quota(company: Company, db: AsyncSession) -> QuotaDecision:
    """Raise QuotaExceededError when the company cannot add another SKU.

    The check and the later insert are not atomic; two concurrent submissions
    may both pass and exceed the limit by one.
    """
    live_count = await count_live_skus(company.id, db)
    decision = check_quota(company.sku_limit, live_count)
    if not decision.allowed:
        raise QuotaExceededError(decision.current_count, decision.limit, plan=company.plan)
    return decision


def plan_catalog(config: Settings = settings) -> Dict[str, Dict[str, Any]]:
    return {
        plan: {
            "name": plan.capitalize(),
            "price": int(config.PLAN_MONTHLY_PRICES.get(plan, 0)),
            "sku_limit": int(limit),
            "unlimited": int(limit) == UNLIMITED_SKU_LIMIT,
        }
        for plan, limit in config.PLAN_SKU_LIMITS.items()
    }


async def get_plan_usage(company: Company, db: AsyncSession, *, live_count: Optional[int] = None) -> Dict[str, Any]:
    if live_count is None:
        live_count = await count_live_skus(company.id, db)
    decision = check_quota(company.sku_limit, live_count)
    return {
        "plan": company.plan,
        "plan_status": company.plan_status,
        "sku_limit": decision.limit,
        "sku_count": decision.current_count,
        "unlimited": decision.unlimited,
        "can_add_sku": decision.allowed,
    }
