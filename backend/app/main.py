"""FastAPI application entry point"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import settings
from app.core.logging import setup_logging
from app.core.middleware import setup_cors_middleware, security_middleware, global_exception_handler
from app.core.otel import initialize_otel, setup_otel_logging, instrument_fastapi, instrument_sqlalchemy
from app.db.session import engine, init_db
from app.db.redis import ping as redis_ping

# Import routers
from app.api import auth, words, monitoring

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    # Startup
    if initialize_otel():
        if setup_otel_logging():
            logger.info(f"OpenTelemetry fully initialized, exporting to {settings.OTEL_EXPORTER_OTLP_ENDPOINT}")
        else:
            logger.warning("OpenTelemetry metrics/traces initialized but logging setup failed")
        instrument_sqlalchemy(engine)
    else:
        logger.info("OpenTelemetry not configured - running without distributed tracing")

    logger.info("Initializing database...")
    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    logger.info("Testing Redis connection...")
    try:
        redis_ping()
        logger.info("Redis connection successful")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Vocab Backend",
    description="Daily vocabulary tracker - submit ten new words at a time",
    version="0.1.0",
    lifespan=lifespan
)

# Instrument FastAPI with OpenTelemetry (no-op until a provider is configured)
instrument_fastapi(app)

setup_cors_middleware(app)
app.middleware("http")(security_middleware)
app.add_exception_handler(Exception, global_exception_handler)

# Include routers
app.include_router(auth.router)
app.include_router(words.router)
app.include_router(monitoring.router)
