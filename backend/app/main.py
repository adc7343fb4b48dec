"""DentiPal Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import get_settings
from .database import get_gateway
from .errors import register_exception_handlers
from .logging_config import get_logger, setup_logging
from .rate_limit import limiter
from .routes import ROUTERS

settings = get_settings()
setup_logging(settings.log_level)
logger = get_logger("dentipal.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting DentiPal Backend API (debug={settings.debug}, storage={settings.storage_backend})")
    yield
    # Shutdown
    logger.info("Shutting down DentiPal Backend API")


app = FastAPI(
    title="DentiPal Backend API",
    description="Job lifecycle and marketplace API for dental staffing",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

register_exception_handlers(app)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in ROUTERS:
    app.include_router(router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "dentipal-backend",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health")
def health():
    """Detailed health check with an actual storage round trip."""
    storage_status = "disconnected"
    try:
        get_gateway(settings).get("job_postings", {"jobId": "__health__"})
        storage_status = "connected"
    except Exception as e:
        storage_status = f"error: {str(e)[:50]}"

    overall_status = "healthy" if storage_status == "connected" else "degraded"

    return {
        "status": overall_status,
        "storage": storage_status,
        "backend": settings.storage_backend,
    }
