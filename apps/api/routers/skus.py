"""
SKU router: upload instructions, poll generation status, browse and delete SKUs.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from routers.auth_scope import CompanyScope, get_company_scope
from services.errors import ValidationError
from services.sku_queue import dispatch_sku_generation
from services.skus import (
    create_sku_record,
    delete_sku,
    ensure_can_create_sku,
    get_sku_detail,
    get_sku_status,
)
from services.usage import get_sku_performance

router = APIRouter()
logger = logging.getLogger(__name__)

PDF_EXTENSIONS = {".pdf"}
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".heic"}
ARTIFACT_TYPES = {"pdf", "image"}
MAX_SKU_CODE_LENGTH = 64


def _sanitize_filename(filename: str) -> str:
    base = os.path.basename(filename or "instructions.pdf")
    safe = "".join(ch if ch.isalnum() or ch in ("-", "_", ".") else "_" for ch in base)
    return safe or "instructions.pdf"


def _artifact_type(filename: str, declared_type: Optional[str]) -> str:
    """Derive pdf/image from the extension; a declared type must agree with it."""
    suffix = Path(filename).suffix.lower()
    if suffix in PDF_EXTENSIONS:
        detected = "pdf"
    elif suffix in IMAGE_EXTENSIONS:
        detected = "image"
    else:
        raise ValidationError("Only PDF and image files are allowed")

    if declared_type:
        declared = declared_type.strip().lower()
        if declared not in ARTIFACT_TYPES or declared != detected:
            raise ValidationError("Only PDF and image files are allowed")
    return detected


async def _store_artifact(file: UploadFile, company_id: str, stored_name: str) -> Path:
    company_dir = Path(settings.UPLOAD_DIR) / company_id
    company_dir.mkdir(parents=True, exist_ok=True)
    destination = company_dir / stored_name
    max_bytes = int(settings.MAX_UPLOAD_BYTES)

    total_size = 0
    try:
        with destination.open("wb") as out:
            while True:
                chunk = await file.read(1024 * 1024)
                if not chunk:
                    break
                total_size += len(chunk)
                if total_size > max_bytes:
                    out.close()
                    destination.unlink(missing_ok=True)
                    raise ValidationError(
                        f"File too large. Maximum upload size is {max_bytes // (1024 * 1024)}MB."
                    )
                out.write(chunk)
    finally:
        await file.close()

    if total_size == 0:
        destination.unlink(missing_ok=True)
        raise ValidationError("Instruction file is empty")
    return destination


@router.get("/")
async def list_skus(
    scope: CompanyScope = Depends(get_company_scope),
    db: AsyncSession = Depends(get_db),
):
    """List the company's SKUs with scan performance."""
    return {"skus": await get_sku_performance(scope.company_id, db)}


@router.post("/", status_code=202)
async def create_sku(
    background_tasks: BackgroundTasks,
    sku_code: Optional[str] = Form(default=None),
    product_name: Optional[str] = Form(default=None),
    category: Optional[str] = Form(default=None),
    file_type: Optional[str] = Form(default=None),
    file: Optional[UploadFile] = File(default=None),
    scope: CompanyScope = Depends(get_company_scope),
    db: AsyncSession = Depends(get_db),
):
    """Upload an instruction file; video and QR generation continue in the background."""
    sku_code = (sku_code or "").strip()
    product_name = (product_name or "").strip()
    if not sku_code or not product_name:
        raise ValidationError("SKU code and product name are required")
    if len(sku_code) > MAX_SKU_CODE_LENGTH or "/" in sku_code:
        raise ValidationError("SKU code must be at most 64 characters and contain no '/'")
    if file is None or not file.filename:
        raise ValidationError("Instruction file is required")

    original_filename = _sanitize_filename(file.filename)
    artifact_type = _artifact_type(original_filename, file_type)

    await ensure_can_create_sku(scope.company, sku_code, db)

    sku_id = str(uuid.uuid4())
    stored_path = await _store_artifact(file, scope.company_id, f"{sku_id}{Path(original_filename).suffix.lower()}")
    try:
        sku = await create_sku_record(
            scope.company,
            db,
            sku_id=sku_id,
            sku_code=sku_code,
            product_name=product_name,
            category=(category or "").strip() or None,
            file_url=str(stored_path),
            file_type=artifact_type,
            created_by=scope.user.id,
        )
    except Exception:
        stored_path.unlink(missing_ok=True)
        raise

    mode = dispatch_sku_generation(sku.id, background_tasks)
    logger.info("Created SKU %s (%s) for company %s; generation via %s", sku.id, sku.sku_code, scope.company_id, mode)

    return {
        "message": "SKU created. Generating video and QR code.",
        "id": sku.id,
        "code": sku.sku_code,
        "name": sku.product_name,
        "status": sku.status,
    }


@router.get("/{sku_id}/status")
async def sku_status(
    sku_id: str,
    scope: CompanyScope = Depends(get_company_scope),
    db: AsyncSession = Depends(get_db),
):
    """Poll SKU processing status."""
    return await get_sku_status(sku_id, scope.company_id, db)


@router.get("/{sku_id}")
async def sku_detail(
    sku_id: str,
    scope: CompanyScope = Depends(get_company_scope),
    db: AsyncSession = Depends(get_db),
):
    """SKU with its top questions and completion drop-off."""
    return await get_sku_detail(sku_id, scope.company_id, db)


@router.delete("/{sku_id}")
async def remove_sku(
    sku_id: str,
    scope: CompanyScope = Depends(get_company_scope),
    db: AsyncSession = Depends(get_db),
):
    await delete_sku(sku_id, scope.company_id, db)
    return {"success": True}
