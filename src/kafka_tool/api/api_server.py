"""
API server for the Kafka Tool.

Exposes the core API to a shell over local HTTP.
"""
from datetime import datetime, timezone
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import kafka_tool.api.globals as g
from kafka_tool.api.routers.profiles import router as profiles_router
from kafka_tool.api.routers.topics import router as topics_router
from kafka_tool.config import get_settings
from kafka_tool.core.config_store import ConfigStore
from kafka_tool.logger_config import setup_logger
from kafka_tool.service import KafkaToolService

logger = setup_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""

    logger.info("Starting Kafka Tool API server...")

    try:
        config_store = ConfigStore(settings.config_path)
        config_store.load()
        g.service = KafkaToolService(config_store, settings)
        g.service_error = None
        logger.info("Kafka Tool service initialized successfully")
    except OSError as e:
        logger.error(f"Failed to initialize Kafka Tool service: {e}", exc_info=True)
        g.service_error = {
            "error": str(e),
            "error_type": type(e).__name__,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
        g.service = None

    yield

    logger.info("Shutting down Kafka Tool API server...")
    if g.service:
        await g.service.close()
        g.service = None


app = FastAPI(
    title="Kafka Tool API",
    description="API for browsing topics, pulling messages, committing offsets and publishing",
    version="1.0.0",
    lifespan=lifespan
)

# Allow a browser-based shell to call the API
if settings.shell_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.shell_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(profiles_router, prefix="/api", tags=["profiles"])
app.include_router(topics_router, prefix="/api", tags=["topics"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Kafka Tool API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint reporting the service and the active profile."""
    if g.service:
        active = g.service.active_profile
        service_details = {
            "status": "initialized",
            "profiles": len(g.service.config_store.list()),
            "active_profile": active.id if active else None,
            "consume_session": g.service.consume_session_id,
        }
    else:
        service_details = {
            "status": "not_initialized",
            "error_details": g.service_error,
        }

    overall_status = "healthy" if g.service else "degraded"
    return {
        "status": overall_status,
        "service": service_details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
