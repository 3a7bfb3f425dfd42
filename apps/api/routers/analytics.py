"""
Analytics router: company dashboards plus the public event recording endpoints
called from the consumer guide page.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import CompanyScope, get_company_scope
from routers.rate_limit import rate_limit
from services.usage import (
    DEFAULT_QUESTION_LIMIT,
    get_overview,
    get_satisfaction,
    get_scans_over_time,
    get_time_of_day,
    get_top_questions,
    record_completion,
    record_question,
    record_scan,
)

router = APIRouter()


class RecordScanRequest(BaseModel):
    sku_code: str = Field(min_length=1, max_length=64)
    session_id: Optional[str] = Field(default=None, max_length=128)
    user_agent: Optional[str] = None


class RecordCompletionRequest(BaseModel):
    sku_code: str = Field(min_length=1, max_length=64)
    session_id: str = Field(min_length=1, max_length=128)
    completion_step: Optional[int] = Field(default=None, ge=1)
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class RecordQuestionRequest(BaseModel):
    sku_code: str = Field(min_length=1, max_length=64)
    question_text: str = Field(min_length=1, max_length=2000)
    session_id: Optional[str] = Field(default=None, max_length=128)
    step_number: Optional[int] = Field(default=None, ge=1)


@router.get("/overview")
async def analytics_overview(
    period: Optional[str] = Query(default=None),
    scope: CompanyScope = Depends(get_company_scope),
    db: AsyncSession = Depends(get_db),
):
    """Top-level stats for the analytics dashboard."""
    return await get_overview(scope.company_id, period, db)


@router.get("/scans")
async def analytics_scans(
    period: Optional[str] = Query(default=None),
    scope: CompanyScope = Depends(get_company_scope),
    db: AsyncSession = Depends(get_db),
):
    """Scans over time, bucketed by day, week or month."""
    return await get_scans_over_time(scope.company_id, period, db)


@router.get("/tod")
async def analytics_time_of_day(
    period: Optional[str] = Query(default=None),
    scope: CompanyScope = Depends(get_company_scope),
    db: AsyncSession = Depends(get_db),
):
    return await get_time_of_day(scope.company_id, period, db)


@router.get("/satisfaction")
async def analytics_satisfaction(
    period: Optional[str] = Query(default=None),
    scope: CompanyScope = Depends(get_company_scope),
    db: AsyncSession = Depends(get_db),
):
    return await get_satisfaction(scope.company_id, period, db)


@router.get("/questions")
async def analytics_questions(
    period: Optional[str] = Query(default=None),
    limit: int = Query(default=DEFAULT_QUESTION_LIMIT, ge=1, le=100),
    scope: CompanyScope = Depends(get_company_scope),
    db: AsyncSession = Depends(get_db),
):
    """Most frequently asked questions."""
    return await get_top_questions(scope.company_id, period, db, limit=limit)


@router.post("/scan")
async def analytics_record_scan(
    request: RecordScanRequest,
    _rate_limit: None = Depends(rate_limit("public_scan", limit=100, window_seconds=900)),
    db: AsyncSession = Depends(get_db),
):
    """Public: record a guide scan for a live SKU."""
    await record_scan(
        request.sku_code,
        db,
        session_id=request.session_id,
        user_agent=request.user_agent,
    )
    return {"success": True}


@router.post("/complete")
async def analytics_record_completion(
    request: RecordCompletionRequest,
    _rate_limit: None = Depends(rate_limit("public_complete", limit=100, window_seconds=900)),
    db: AsyncSession = Depends(get_db),
):
    """Public: attach completion and rating to the session's latest scan."""
    updated = await record_completion(
        request.sku_code,
        request.session_id,
        db,
        completion_step=request.completion_step,
        rating=request.rating,
    )
    return {"success": True, "updated": updated}


@router.post("/question")
async def analytics_record_question(
    request: RecordQuestionRequest,
    _rate_limit: None = Depends(rate_limit("public_question", limit=100, window_seconds=900)),
    db: AsyncSession = Depends(get_db),
):
    """Public: record a question asked during assembly."""
    await record_question(
        request.sku_code,
        request.question_text,
        db,
        session_id=request.session_id,
        step_number=request.step_number,
    )
    return {"success": True}
