import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import models  # noqa: F401
from database import Base
from main import app
from models.company import Company
from models.user import User
from routers import rate_limit
from services.session_token import create_session_token


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "assembly_guides.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker
    await engine.dispose()


@pytest.fixture
def seed_company(session_maker):
    """Factory creating a company with one admin user; returns ids and an auth header."""

    async def _seed(name="Acme Furniture", plan="trial", sku_limit=2, email=None):
        async with session_maker() as db:
            company = Company(name=name, plan=plan, sku_limit=sku_limit)
            db.add(company)
            await db.flush()
            user = User(
                company_id=company.id,
                email=email or f"owner@{name.lower().replace(' ', '-')}.example.com",
                first_name="Pat",
            )
            db.add(user)
            await db.commit()
            token = create_session_token(user.id, company.id, user.email)["token"]
            return {
                "company_id": company.id,
                "user_id": user.id,
                "email": user.email,
                "headers": {"Authorization": f"Bearer {token}"},
            }

    return _seed
