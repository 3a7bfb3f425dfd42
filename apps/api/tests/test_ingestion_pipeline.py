import json
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.future import select
from sqlalchemy.pool import AsyncAdaptedQueuePool

from config import settings
from database import Base
from generation.models import GeneratedCode, GeneratedVideo, InstructionStep
from models.company import Company
from models.notification_preference import NotificationPreference
from models.sku import DERIVED_FIELDS, Sku
from models.user import User
from services.errors import CodeGenerationError, ExtractionError, MediaGenerationError, NotificationError
from services.ingestion import process_sku_generation
from services.skus import get_sku_status


def _steps(count):
    return [InstructionStep(step_number=i, description=f"Do step {i}") for i in range(1, count + 1)]


def _mock_session_maker(mock_sku):
    mock_db = AsyncMock()
    mock_result = MagicMock()
    mock_result.scalar_one_or_none.return_value = mock_sku
    mock_db.execute.return_value = mock_result

    mock_session_ctx = AsyncMock()
    mock_session_ctx.__aenter__.return_value = mock_db
    mock_session_ctx.__aexit__.return_value = None
    return MagicMock(return_value=mock_session_ctx), mock_db


def _mock_sku():
    mock_sku = MagicMock(spec=Sku)
    mock_sku.id = "sku-123"
    mock_sku.sku_code = "BK-100"
    mock_sku.product_name = "Bookshelf"
    mock_sku.status = "processing"
    mock_sku.file_url = "/tmp/bk-100.pdf"
    mock_sku.file_type = "pdf"
    return mock_sku


@pytest.mark.asyncio
async def test_process_sku_generation_success():
    mock_sku = _mock_sku()
    mock_session_maker, mock_db = _mock_session_maker(mock_sku)
    video = GeneratedVideo(video_url="https://cdn.test/sku-123/assembly.mp4", duration_seconds=114, step_count=3)
    code = GeneratedCode(qr_code_url="/public/qr/sku-123.png", qr_target_url="http://localhost:3000/s/BK-100")

    with patch("services.ingestion.async_session_maker", mock_session_maker), \
         patch("services.ingestion.extract_steps", return_value=_steps(3)) as mock_extract, \
         patch("services.ingestion.generate_video", new=AsyncMock(return_value=video)) as mock_video, \
         patch("services.ingestion.generate_qr_code", return_value=code) as mock_qr, \
         patch("services.ingestion._notify_ready", new=AsyncMock(return_value=True)) as mock_notify:

        result = await process_sku_generation("sku-123")

        assert result == "live"
        assert mock_extract.called
        assert mock_video.called
        assert mock_qr.called
        assert mock_notify.called

        assert mock_sku.status == "live"
        assert mock_sku.step_count == 3
        assert mock_sku.video_duration == 114
        assert mock_sku.qr_target_url == "http://localhost:3000/s/BK-100"
        assert mock_db.commit.call_count >= 1


@pytest.mark.asyncio
async def test_process_sku_generation_extraction_failure():
    mock_sku = _mock_sku()
    mock_session_maker, mock_db = _mock_session_maker(mock_sku)

    with patch("services.ingestion.async_session_maker", mock_session_maker), \
         patch("services.ingestion.extract_steps", side_effect=ExtractionError("unreadable pdf")), \
         patch("services.ingestion.generate_video", new=AsyncMock()) as mock_video, \
         patch("services.ingestion._notify_ready", new=AsyncMock()) as mock_notify:

        result = await process_sku_generation("sku-123")

        assert result == "error"
        assert not mock_video.called
        assert not mock_notify.called
        assert mock_sku.status == "error"
        assert mock_sku.video_url is None
        assert mock_sku.step_count is None
        assert "extraction: unreadable pdf" in mock_sku.error_message
        assert mock_db.commit.called


@pytest.mark.asyncio
async def test_process_sku_generation_skips_terminal_sku():
    mock_sku = _mock_sku()
    mock_sku.status = "live"
    mock_session_maker, _ = _mock_session_maker(mock_sku)

    with patch("services.ingestion.async_session_maker", mock_session_maker), \
         patch("services.ingestion.extract_steps") as mock_extract:
        assert await process_sku_generation("sku-123") == "live"
        assert not mock_extract.called


@pytest.mark.asyncio
async def test_process_sku_generation_missing_sku():
    mock_session_maker, _ = _mock_session_maker(None)
    with patch("services.ingestion.async_session_maker", mock_session_maker):
        assert await process_sku_generation("missing") is None


@pytest.fixture
def pipeline_settings(tmp_path):
    return settings.model_copy(
        update={
            "OPENAI_API_KEY": "",
            "QR_OUTPUT_DIR": str(tmp_path / "qr"),
            "SMTP_HOST": "",
            "VIDEO_SERVICE_URL": "",
            "VIDEO_PLACEHOLDER_DELAY_SECONDS": 0.0,
        }
    )


async def _create_processing_sku(session_maker, seeded, tmp_path, code="BK-100"):
    artifact = tmp_path / f"{code}.pdf"
    artifact.write_bytes(b"%PDF-1.4 assembly instructions")
    async with session_maker() as db:
        sku = Sku(
            company_id=seeded["company_id"],
            created_by=seeded["user_id"],
            sku_code=code,
            product_name="Bookshelf",
            status="processing",
            file_url=str(artifact),
            file_type="pdf",
        )
        db.add(sku)
        await db.commit()
        return sku.id


async def _load_sku(session_maker, sku_id):
    async with session_maker() as db:
        result = await db.execute(select(Sku).where(Sku.id == sku_id))
        return result.scalar_one()


@pytest.mark.asyncio
async def test_pipeline_reaches_live_with_all_derived_fields(session_maker, seed_company, tmp_path, pipeline_settings):
    seeded = await seed_company()
    sku_id = await _create_processing_sku(session_maker, seeded, tmp_path)

    with patch("services.ingestion.async_session_maker", session_maker), \
         patch("services.ingestion.settings", pipeline_settings):
        assert await process_sku_generation(sku_id) == "live"

    sku = await _load_sku(session_maker, sku_id)
    assert sku.status == "live"
    assert all(getattr(sku, field) is not None for field in DERIVED_FIELDS)
    assert sku.step_count == 6
    assert sku.video_duration == 6 * 38
    assert sku.qr_target_url == "http://localhost:3000/s/BK-100"
    assert sku.qr_code_url == f"/public/qr/{sku_id}.png"
    assert (tmp_path / "qr" / f"{sku_id}.png").is_file()
    assert sku.error_message is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "target, error, stage",
    [
        ("services.ingestion.extract_steps", ExtractionError("no text layer"), "extraction"),
        ("services.ingestion.generate_video", MediaGenerationError("render failed"), "media_generation"),
        ("services.ingestion.generate_qr_code", CodeGenerationError("disk full"), "code_generation"),
    ],
)
async def test_pipeline_stage_failure_leaves_error_without_derived_fields(
    session_maker, seed_company, tmp_path, pipeline_settings, target, error, stage
):
    seeded = await seed_company()
    sku_id = await _create_processing_sku(session_maker, seeded, tmp_path)

    with patch("services.ingestion.async_session_maker", session_maker), \
         patch("services.ingestion.settings", pipeline_settings), \
         patch(target, side_effect=error), \
         patch("services.ingestion.deliver_sku_ready_email", new=AsyncMock()) as mock_deliver:
        assert await process_sku_generation(sku_id) == "error"
        assert not mock_deliver.called

    sku = await _load_sku(session_maker, sku_id)
    assert sku.status == "error"
    assert all(getattr(sku, field) is None for field in DERIVED_FIELDS)
    assert sku.error_message.startswith(f"{stage}:")


@pytest.mark.asyncio
async def test_notification_failure_does_not_revert_live(session_maker, seed_company, tmp_path, pipeline_settings):
    seeded = await seed_company()
    sku_id = await _create_processing_sku(session_maker, seeded, tmp_path)

    with patch("services.ingestion.async_session_maker", session_maker), \
         patch("services.ingestion.settings", pipeline_settings), \
         patch(
             "services.ingestion.deliver_sku_ready_email",
             new=AsyncMock(side_effect=NotificationError("smtp down")),
         ) as mock_deliver:
        assert await process_sku_generation(sku_id) == "live"
        assert mock_deliver.called
        message = mock_deliver.call_args.args[0]
        assert message.to == seeded["email"]
        assert message.sku_code == "BK-100"

    sku = await _load_sku(session_maker, sku_id)
    assert sku.status == "live"
    assert sku.step_count == 6


@pytest.mark.asyncio
async def test_ready_email_respects_opt_out(session_maker, seed_company, tmp_path, pipeline_settings):
    seeded = await seed_company()
    async with session_maker() as db:
        db.add(NotificationPreference(user_id=seeded["user_id"], qr_ready=False))
        await db.commit()
    sku_id = await _create_processing_sku(session_maker, seeded, tmp_path)

    with patch("services.ingestion.async_session_maker", session_maker), \
         patch("services.ingestion.settings", pipeline_settings), \
         patch("services.ingestion.deliver_sku_ready_email", new=AsyncMock(return_value=True)) as mock_deliver:
        assert await process_sku_generation(sku_id) == "live"
        assert not mock_deliver.called


def _fake_openai_client(step_count):
    content = json.dumps(
        {"steps": [{"step_number": i, "description": f"Fit panel {i}."} for i in range(1, step_count + 1)]}
    )
    client = MagicMock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )
    return client


@pytest.mark.asyncio
async def test_committed_step_count_tracks_extracted_steps(session_maker, seed_company, tmp_path, pipeline_settings):
    seeded = await seed_company(plan="scale", sku_limit=-1)
    durations = []

    for step_count in (1, 4, 9):
        sku_id = await _create_processing_sku(session_maker, seeded, tmp_path, code=f"STEPS-{step_count}")
        with patch("services.ingestion.async_session_maker", session_maker), \
             patch("services.ingestion.settings", pipeline_settings), \
             patch("generation.steps.get_openai_client", return_value=_fake_openai_client(step_count)):
            assert await process_sku_generation(sku_id) == "live"

        sku = await _load_sku(session_maker, sku_id)
        assert sku.step_count == step_count
        assert sku.video_duration > 0
        durations.append(sku.video_duration)

    assert durations == sorted(durations)
    assert len(set(durations)) == len(durations)


@pytest.mark.asyncio
async def test_external_stages_do_not_hold_a_database_connection(tmp_path, pipeline_settings):
    # One pooled connection: any session held by the pipeline blocks every other reader.
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'narrow_pool.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=1,
    )
    narrow_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        async with narrow_maker() as db:
            company = Company(name="Narrow Co", plan="trial", sku_limit=2)
            db.add(company)
            await db.flush()
            user = User(company_id=company.id, email="owner@narrow.example.com")
            db.add(user)
            await db.commit()
            seeded = {"company_id": company.id, "user_id": user.id}
        sku_id = await _create_processing_sku(narrow_maker, seeded, tmp_path)

        observed = []

        async def render_while_polling(target_sku_id, sku_code, product_name, steps, config):
            async with narrow_maker() as db:
                observed.append((await get_sku_status(target_sku_id, seeded["company_id"], db))["status"])
            return GeneratedVideo(
                video_url="https://cdn.test/narrow/assembly.mp4",
                duration_seconds=len(steps) * 38,
                step_count=len(steps),
            )

        with patch("services.ingestion.async_session_maker", narrow_maker), \
             patch("services.ingestion.settings", pipeline_settings), \
             patch("services.ingestion.generate_video", new=render_while_polling):
            assert await process_sku_generation(sku_id) == "live"

        assert observed == ["processing"]
    finally:
        await engine.dispose()
