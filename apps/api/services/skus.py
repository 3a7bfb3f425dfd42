"""SKU catalog operations: creation, status polling, detail and deletion."""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.company import Company
from models.question import Question
from models.scan import Scan
from models.sku import SKU_STATUS_LIVE, SKU_STATUS_PROCESSING, Sku
from services.errors import ConflictError, NotFoundError
from services.quota import enforce_sku_quota
from services.usage import get_completion_dropoff, get_top_questions

DEFAULT_CATEGORY = "Other"


async def _find_by_code(company_id: str, sku_code: str, db: AsyncSession) -> Optional[Sku]:
    result = await db.execute(
        select(Sku.id).where(Sku.company_id == company_id, Sku.sku_code == sku_code)
    )
    return result.scalar_one_or_none()


async def ensure_can_create_sku(company: Company, sku_code: str, db: AsyncSession) -> None:
    """Quota first, then duplicate code within the company."""
    await enforce_sku_quota(company, db)
    if await _find_by_code(company.id, sku_code, db):
        raise ConflictError(f'SKU code "{sku_code}" already exists')


async def create_sku_record(
    company: Company,
    db: AsyncSession,
    *,
    sku_code: str,
    product_name: str,
    category: Optional[str],
    file_url: str,
    file_type: str,
    created_by: Optional[str],
    sku_id: Optional[str] = None,
) -> Sku:
    """Insert the SKU in 'processing'. The pipeline is dispatched separately."""
    sku = Sku(
        id=sku_id or str(uuid.uuid4()),
        company_id=company.id,
        created_by=created_by,
        sku_code=sku_code,
        product_name=product_name,
        category=category or DEFAULT_CATEGORY,
        status=SKU_STATUS_PROCESSING,
        file_url=file_url,
        file_type=file_type,
    )
    db.add(sku)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError(f'SKU code "{sku_code}" already exists') from exc
    await db.refresh(sku)
    return sku


async def get_company_sku(sku_id: str, company_id: str, db: AsyncSession) -> Sku:
    result = await db.execute(
        select(Sku).where(
            Sku.id == sku_id,
            Sku.company_id == company_id,
        )
    )
    sku = result.scalar_one_or_none()
    if not sku:
        raise NotFoundError("SKU not found")
    return sku


def serialize_status(sku: Sku) -> Dict[str, Any]:
    return {
        "id": sku.id,
        "sku_code": sku.sku_code,
        "status": sku.status,
        "derived": sku.derived_fields() if sku.status == SKU_STATUS_LIVE else None,
        "updated_at": sku.updated_at.isoformat() if sku.updated_at else None,
    }


async def get_sku_status(sku_id: str, company_id: str, db: AsyncSession) -> Dict[str, Any]:
    """Snapshot of pipeline state for polling. Cross-company lookups are NotFound."""
    sku = await get_company_sku(sku_id, company_id, db)
    return serialize_status(sku)


def serialize_sku(sku: Sku) -> Dict[str, Any]:
    return {
        "id": sku.id,
        "sku_code": sku.sku_code,
        "product_name": sku.product_name,
        "category": sku.category,
        "status": sku.status,
        "file_type": sku.file_type,
        **sku.derived_fields(),
        "created_at": sku.created_at.isoformat() if sku.created_at else None,
        "updated_at": sku.updated_at.isoformat() if sku.updated_at else None,
    }


async def get_sku_detail(sku_id: str, company_id: str, db: AsyncSession) -> Dict[str, Any]:
    sku = await get_company_sku(sku_id, company_id, db)
    questions = await get_top_questions(company_id, "all", db, limit=10, sku_id=sku.id)
    return {
        "sku": serialize_sku(sku),
        "questions": questions["questions"],
        "dropoff": await get_completion_dropoff(sku.id, db),
    }


async def delete_sku(sku_id: str, company_id: str, db: AsyncSession) -> None:
    """Delete a SKU together with its scan and question events."""
    sku = await get_company_sku(sku_id, company_id, db)
    await db.execute(delete(Scan).where(Scan.sku_id == sku.id))
    await db.execute(delete(Question).where(Question.sku_id == sku.id))
    await db.execute(delete(Sku).where(Sku.id == sku.id))
    await db.commit()
