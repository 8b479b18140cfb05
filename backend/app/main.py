# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import AsyncGenerator, Dict

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .errors import register_error_handlers
from .routes import prometheus
from .routes.v1 import (
    bookings as bookings_v1,
    coaches as coaches_v1,
    push as push_v1,
    subscriptions as subscriptions_v1,
    webhooks_stripe as webhooks_stripe_v1,
)
from .services.push_sender import get_push_sender

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: wire process-wide clients on startup."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    # Build the push transport eagerly so misconfigured Firebase fails at boot
    get_push_sender()
    if not settings.stripe_configured:
        logger.warning("Stripe is not configured; checkout and webhooks will be rejected")

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(coaches_v1.router, prefix="/coaches")
api_v1.include_router(subscriptions_v1.router, prefix="/subscriptions")
api_v1.include_router(push_v1.router, prefix="/push")
api_v1.include_router(webhooks_stripe_v1.router, prefix="/webhooks")
app.include_router(api_v1)

# Prometheus scrape endpoint lives outside the versioned API
app.include_router(prometheus.router)


@app.get("/health", include_in_schema=False)
def health_check() -> Dict[str, str]:
    return {
        "status": "healthy",
        "service": f"{BRAND_NAME} API",
        "version": API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
