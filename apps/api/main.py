"""
Assembly Guide - FastAPI Backend
Main application entry point with health check and API routing.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import analytics, billing, guide, health, skus
from services.errors import AssemblyGuideError
from services.sku_queue import recover_stalled_skus

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Assembly Guide API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    try:
        recovered = await recover_stalled_skus(int(settings.SKU_STALLED_AFTER_MINUTES))
        if recovered:
            print(f"♻️ Marked {recovered} stalled SKUs as error after startup.")
    except Exception as exc:
        print(f"⚠️ Stalled SKU recovery skipped: {exc}")
    yield
    # Shutdown
    print("👋 Shutting down API...")


app = FastAPI(
    title="Assembly Guide API",
    description="Turn assembly instructions into a video guide behind a QR code",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AssemblyGuideError)
async def assembly_guide_error_handler(request: Request, exc: AssemblyGuideError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "request"
    message = first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"detail": f"{field}: {message}"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(skus.router, prefix="/skus", tags=["SKUs"])
app.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])
app.include_router(billing.router, prefix="/billing", tags=["Billing"])
app.include_router(guide.router, tags=["Guide"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Assembly Guide API",
        "version": "0.1.0",
        "status": "running"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.API_HOST, port=settings.API_PORT)
