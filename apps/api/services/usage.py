"""Usage aggregation over scan and question events.

Pure bucketing helpers live at the top; the async query functions below feed
them rows scoped to one company and an optional period window.
"""

from __future__ import annotations

from collections import Counter, OrderedDict
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import case, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.question import Question
from models.scan import Scan
from models.sku import SKU_STATUS_LIVE, Sku
from services.errors import NotFoundError, ValidationError

PERIOD_DAYS: Dict[str, int] = {
    "7d": 7,
    "30d": 30,
    "3m": 90,
    "6m": 180,
    "1y": 365,
}
DEFAULT_PERIOD = "7d"
UNBOUNDED_PERIOD = "all"

TIME_OF_DAY_BUCKETS: Sequence[Tuple[str, int, int]] = (
    ("6-9", 6, 9),
    ("9-12", 9, 12),
    ("12-15", 12, 15),
    ("15-18", 15, 18),
    ("18-21", 18, 21),
)
LATE_BUCKET = "21+"  # everything outside [6, 21)

ANONYMOUS_SESSION = "anonymous"
DEFAULT_QUESTION_LIMIT = 10


def normalize_period(period: Optional[str]) -> str:
    """Map a period selector onto a known preset; unknown values become unbounded."""
    if period is None or period == "":
        return DEFAULT_PERIOD
    return period if period in PERIOD_DAYS else UNBOUNDED_PERIOD


def period_start(period: str, now: Optional[datetime] = None) -> Optional[datetime]:
    days = PERIOD_DAYS.get(period)
    if days is None:
        return None
    current = now or datetime.now(timezone.utc)
    return current - timedelta(days=days)


def bucket_granularity(period: str) -> str:
    days = PERIOD_DAYS.get(period)
    if days is None or days > 180:
        return "month"
    if days <= 30:
        return "day"
    return "week"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def bucket_key(timestamp: datetime, granularity: str) -> str:
    ts = _as_utc(timestamp)
    if granularity == "day":
        return ts.date().isoformat()
    if granularity == "week":
        day: date = ts.date()
        # Python weekday(): Monday=0 .. Sunday=6; weeks start on Sunday.
        start = day - timedelta(days=(day.weekday() + 1) % 7)
        return start.isoformat()
    return f"{ts.year:04d}-{ts.month:02d}"


def group_scans_by_bucket(timestamps: Iterable[datetime], granularity: str) -> List[Dict[str, Any]]:
    counts = Counter(bucket_key(ts, granularity) for ts in timestamps if ts is not None)
    return [{"date": key, "count": counts[key]} for key in sorted(counts)]


def percentage(part: int, total: int) -> float:
    if not total:
        return 0.0
    return round((part / total) * 100, 1)


def time_of_day_label(hour: int) -> str:
    for label, start, end in TIME_OF_DAY_BUCKETS:
        if start <= hour < end:
            return label
    return LATE_BUCKET


def time_of_day_histogram(hours: Iterable[int]) -> List[Dict[str, Any]]:
    counts: "OrderedDict[str, int]" = OrderedDict((label, 0) for label, _, _ in TIME_OF_DAY_BUCKETS)
    counts[LATE_BUCKET] = 0
    for hour in hours:
        counts[time_of_day_label(int(hour))] += 1
    total = sum(counts.values())
    return [
        {"label": label, "count": count, "percentage": percentage(count, total)}
        for label, count in counts.items()
    ]


def average_rating(ratings: Sequence[int]) -> Optional[float]:
    if not ratings:
        return None
    return round(sum(ratings) / len(ratings), 1)


def rating_breakdown(ratings: Sequence[int]) -> Dict[str, Any]:
    counts = Counter(int(r) for r in ratings)
    total = len(ratings)
    return {
        "avg": average_rating(ratings),
        "total": total,
        "breakdown": [
            {"stars": stars, "count": counts.get(stars, 0), "percentage": percentage(counts.get(stars, 0), total)}
            for stars in (5, 4, 3, 2, 1)
        ],
    }


def session_repeat_stats(session_ids: Iterable[str]) -> Dict[str, Any]:
    per_session = Counter(session_ids)
    total_sessions = len(per_session)
    repeat_sessions = sum(1 for count in per_session.values() if count > 1)
    return {
        "repeat_sessions": repeat_sessions,
        "total_sessions": total_sessions,
        "repeat_rate": percentage(repeat_sessions, total_sessions),
    }


def group_top_questions(
    rows: Iterable[Tuple[str, Optional[int], Optional[str]]],
    limit: int = DEFAULT_QUESTION_LIMIT,
) -> List[Dict[str, Any]]:
    """Group (question_text, step_number, sku_name) rows by normalized text.

    The first row seen for a group supplies its representative text, step and
    SKU name. Ties keep first-seen order.
    """
    grouped: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for text, step_number, sku_name in rows:
        key = (text or "").strip().lower()
        if not key:
            continue
        entry = grouped.get(key)
        if entry is None:
            entry = {"question": text, "step": step_number, "sku_name": sku_name, "count": 0}
            grouped[key] = entry
        entry["count"] += 1
    ranked = sorted(grouped.values(), key=lambda item: item["count"], reverse=True)
    return ranked[: max(int(limit), 0)]


def _scan_filters(company_id: str, start: Optional[datetime]) -> list:
    filters = [Scan.company_id == company_id]
    if start is not None:
        filters.append(Scan.scanned_at >= start)
    return filters


async def get_overview(company_id: str, period: Optional[str], db: AsyncSession) -> Dict[str, Any]:
    period_key = normalize_period(period)
    start = period_start(period_key)

    result = await db.execute(
        select(Scan.session_id, Scan.completed, Scan.rating).where(*_scan_filters(company_id, start))
    )
    rows = result.all()
    total_scans = len(rows)
    completed_scans = sum(1 for row in rows if row.completed)
    ratings = [int(row.rating) for row in rows if row.rating is not None]

    live_result = await db.execute(
        select(func.count(Sku.id)).where(Sku.company_id == company_id, Sku.status == SKU_STATUS_LIVE)
    )

    return {
        "period": period_key,
        "total_scans": total_scans,
        "completed_scans": completed_scans,
        "completion_rate": percentage(completed_scans, total_scans),
        "avg_rating": average_rating(ratings),
        **session_repeat_stats(row.session_id for row in rows),
        "active_skus": int(live_result.scalar() or 0),
    }


async def get_scans_over_time(company_id: str, period: Optional[str], db: AsyncSession) -> Dict[str, Any]:
    period_key = normalize_period(period)
    granularity = bucket_granularity(period_key)
    result = await db.execute(
        select(Scan.scanned_at).where(*_scan_filters(company_id, period_start(period_key)))
    )
    return {
        "period": period_key,
        "group_by": granularity,
        "data": group_scans_by_bucket(result.scalars().all(), granularity),
    }


async def get_time_of_day(company_id: str, period: Optional[str], db: AsyncSession) -> Dict[str, Any]:
    period_key = normalize_period(period)
    result = await db.execute(
        select(Scan.hour_of_day).where(*_scan_filters(company_id, period_start(period_key)))
    )
    hours = [h for h in result.scalars().all() if h is not None]
    return {"period": period_key, "data": time_of_day_histogram(hours)}


async def get_satisfaction(company_id: str, period: Optional[str], db: AsyncSession) -> Dict[str, Any]:
    period_key = normalize_period(period)
    result = await db.execute(
        select(Scan.rating).where(
            *_scan_filters(company_id, period_start(period_key)),
            Scan.rating.is_not(None),
        )
    )
    return {"period": period_key, **rating_breakdown([int(r) for r in result.scalars().all()])}


async def get_top_questions(
    company_id: str,
    period: Optional[str],
    db: AsyncSession,
    *,
    limit: int = DEFAULT_QUESTION_LIMIT,
    sku_id: Optional[str] = None,
) -> Dict[str, Any]:
    period_key = normalize_period(period)
    start = period_start(period_key)
    query = (
        select(Question.question_text, Question.step_number, Sku.product_name)
        .join(Sku, Sku.id == Question.sku_id)
        .where(Question.company_id == company_id)
        .order_by(Question.asked_at.asc())
    )
    if start is not None:
        query = query.where(Question.asked_at >= start)
    if sku_id is not None:
        query = query.where(Question.sku_id == sku_id)
    result = await db.execute(query)
    return {"period": period_key, "questions": group_top_questions(result.all(), limit)}


async def get_sku_performance(company_id: str, db: AsyncSession) -> List[Dict[str, Any]]:
    """Per-SKU scan totals for the company, ordered by total scans."""
    sku_result = await db.execute(
        select(Sku).where(Sku.company_id == company_id).order_by(Sku.created_at.desc())
    )
    skus = sku_result.scalars().all()

    scan_result = await db.execute(
        select(Scan.sku_id, Scan.session_id, Scan.completed, Scan.rating).where(Scan.company_id == company_id)
    )
    by_sku: Dict[str, list] = {}
    for row in scan_result.all():
        by_sku.setdefault(row.sku_id, []).append(row)

    summaries = []
    for sku in skus:
        rows = by_sku.get(sku.id, [])
        total = len(rows)
        completed = sum(1 for row in rows if row.completed)
        sessions = Counter(row.session_id for row in rows)
        summaries.append(
            {
                "id": sku.id,
                "sku_code": sku.sku_code,
                "product_name": sku.product_name,
                "category": sku.category,
                "status": sku.status,
                "step_count": sku.step_count,
                "qr_code_url": sku.qr_code_url,
                "qr_target_url": sku.qr_target_url,
                "created_at": sku.created_at.isoformat() if sku.created_at else None,
                "total_scans": total,
                "completed_scans": completed,
                "completion_rate": percentage(completed, total) if total else None,
                "avg_rating": average_rating([int(row.rating) for row in rows if row.rating is not None]),
                "repeat_scans": sum(1 for row in rows if sessions[row.session_id] > 1),
            }
        )
    summaries.sort(key=lambda item: item["total_scans"], reverse=True)
    return summaries


async def get_completion_dropoff(sku_id: str, db: AsyncSession) -> List[Dict[str, int]]:
    result = await db.execute(
        select(Scan.completion_step, func.count(Scan.id))
        .where(Scan.sku_id == sku_id, Scan.completion_step.is_not(None))
        .group_by(Scan.completion_step)
        .order_by(Scan.completion_step.asc())
    )
    return [{"step": int(step), "count": int(count)} for step, count in result.all()]


async def resolve_public_sku(sku_code: str, db: AsyncSession, *, require_live: bool) -> Sku:
    """Resolve a public SKU code. Codes are unique per company, so a live match wins, then the newest."""
    code = (sku_code or "").strip()
    if not code:
        raise ValidationError("SKU code is required")
    query = select(Sku).where(Sku.sku_code == code)
    if require_live:
        query = query.where(Sku.status == SKU_STATUS_LIVE)
    query = query.order_by(
        case((Sku.status == SKU_STATUS_LIVE, 0), else_=1),
        Sku.created_at.desc(),
    ).limit(1)
    result = await db.execute(query)
    sku = result.scalar_one_or_none()
    if not sku:
        raise NotFoundError("SKU not found")
    return sku


def _session_or_anonymous(session_id: Optional[str]) -> str:
    value = (session_id or "").strip()
    return value or ANONYMOUS_SESSION


async def record_scan(
    sku_code: str,
    db: AsyncSession,
    *,
    session_id: Optional[str] = None,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Scan:
    sku = await resolve_public_sku(sku_code, db, require_live=True)
    scanned_at = now or datetime.now(timezone.utc)
    scan = Scan(
        sku_id=sku.id,
        company_id=sku.company_id,
        session_id=_session_or_anonymous(session_id),
        user_agent=user_agent[:500] if user_agent else None,
        hour_of_day=_as_utc(scanned_at).hour,
        scanned_at=scanned_at,
    )
    db.add(scan)
    await db.commit()
    return scan


async def record_completion(
    sku_code: str,
    session_id: str,
    db: AsyncSession,
    *,
    completion_step: Optional[int] = None,
    rating: Optional[int] = None,
) -> int:
    """Attach completion data to the latest scan for this SKU and session.

    Returns the number of rows updated. Zero is not an error: the scan and the
    completion arrive as independent calls. Picking the latest row is a
    best-effort match when one session scans concurrently.
    """
    if rating is not None and not 1 <= int(rating) <= 5:
        raise ValidationError("rating must be between 1 and 5")
    if completion_step is not None and int(completion_step) < 1:
        raise ValidationError("completion_step must be a positive step number")

    sku = await resolve_public_sku(sku_code, db, require_live=False)
    latest = await db.execute(
        select(Scan.id)
        .where(Scan.sku_id == sku.id, Scan.session_id == _session_or_anonymous(session_id))
        .order_by(Scan.scanned_at.desc())
        .limit(1)
    )
    scan_id = latest.scalar_one_or_none()
    if scan_id is None:
        return 0

    result = await db.execute(
        update(Scan)
        .where(Scan.id == scan_id)
        .values(completed=True, completion_step=completion_step, rating=rating)
    )
    await db.commit()
    return int(result.rowcount or 0)


async def record_question(
    sku_code: str,
    question_text: str,
    db: AsyncSession,
    *,
    session_id: Optional[str] = None,
    step_number: Optional[int] = None,
) -> Question:
    text = (question_text or "").strip()
    if not text:
        raise ValidationError("Question text is required")
    sku = await resolve_public_sku(sku_code, db, require_live=False)
    question = Question(
        sku_id=sku.id,
        company_id=sku.company_id,
        session_id=_session_or_anonymous(session_id),
        question_text=text[:2000],
        step_number=step_number,
        asked_at=datetime.now(timezone.utc),
    )
    db.add(question)
    await db.commit()
    return question
