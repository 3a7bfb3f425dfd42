import pytest

from config import UNLIMITED_SKU_LIMIT, plan_sku_limit
from models.company import Company
from models.sku import SKU_STATUS_ERROR, SKU_STATUS_LIVE, SKU_STATUS_PROCESSING, Sku
from services.errors import QuotaExceededError
from services.quota import check_quota, enforce_sku_quota, get_plan_usage, plan_catalog


def test_limit_two_with_two_live_denies():
    decision = check_quota(2, 2)
    assert decision.allowed is False
    assert decision.current_count == 2
    assert decision.limit == 2


def test_limit_two_with_one_live_allows():
    assert check_quota(2, 1).allowed is True


def test_unlimited_always_allows():
    for count in (0, 25, 10_000):
        decision = check_quota(UNLIMITED_SKU_LIMIT, count)
        assert decision.allowed is True
        assert decision.unlimited is True


def test_plan_catalog_matches_plan_limits():
    catalog = plan_catalog()
    assert catalog["trial"]["sku_limit"] == 2
    assert catalog["starter"]["sku_limit"] == 10
    assert catalog["growth"]["sku_limit"] == 25
    assert catalog["scale"]["unlimited"] is True
    assert plan_sku_limit("scale") == UNLIMITED_SKU_LIMIT


@pytest.mark.asyncio
async def test_enforce_quota_counts_only_live_skus(session_maker, seed_company):
    seeded = await seed_company(sku_limit=2)
    async with session_maker() as db:
        for index, status in enumerate((SKU_STATUS_LIVE, SKU_STATUS_PROCESSING, SKU_STATUS_ERROR)):
            db.add(
                Sku(
                    company_id=seeded["company_id"],
                    sku_code=f"SKU-{index}",
                    product_name="Shelf",
                    status=status,
                )
            )
        await db.commit()

        company = await db.get(Company, seeded["company_id"])
        decision = await enforce_sku_quota(company, db)
        assert decision.allowed is True
        assert decision.current_count == 1

        db.add(Sku(company_id=company.id, sku_code="SKU-9", product_name="Desk", status=SKU_STATUS_LIVE))
        await db.commit()

        with pytest.raises(QuotaExceededError) as exc_info:
            await enforce_sku_quota(company, db)
        assert exc_info.value.to_payload()["current_count"] == 2
        assert exc_info.value.to_payload()["limit"] == 2

        usage = await get_plan_usage(company, db)
        assert usage["sku_count"] == 2
        assert usage["can_add_sku"] is False
