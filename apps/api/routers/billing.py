"""Billing router: plan catalog and the company's current plan usage."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import CompanyScope, get_company_scope
from services.quota import get_plan_usage, plan_catalog

router = APIRouter()


@router.get("/plans")
async def list_plans():
    """Public plan catalog with per-plan SKU limits (-1 is unlimited)."""
    return {"plans": plan_catalog(settings), "default_plan": settings.DEFAULT_PLAN}


@router.get("/current")
async def current_plan(
    scope: CompanyScope = Depends(get_company_scope),
    db: AsyncSession = Depends(get_db),
):
    return await get_plan_usage(scope.company, db)
