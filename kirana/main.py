"""
Kirana Billing API - Main Application

- Conditional API docs (disabled in production by default)
- Request-correlated logging
- RFC 7807 problem responses for every error
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from kirana.api.deps import DbSession
from kirana.api.v2.router import api_router
from kirana.config import settings
from kirana.database import init_db
from kirana.exceptions import BillingException, create_exception_handlers
from kirana.middleware import LOG_FORMAT, CorrelationIdMiddleware, install_log_filter
# Import all models to register them with SQLAlchemy metadata before init_db()
from kirana.models import InvoiceRecord, Customer, Item, InventoryLevel  # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=LOG_FORMAT,
)
install_log_filter()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting Kirana Billing API...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    # Don't log the full database URL, just the driver
    logger.info(f"Database driver: {settings.DATABASE_URL.split('://', 1)[0]}")
    await init_db()
    logger.info("Database initialized successfully")
    yield
    # Shutdown
    logger.info("Shutting down Kirana Billing API...")


docs_url = "/docs" if settings.DOCS_ENABLED else None
redoc_url = "/redoc" if settings.DOCS_ENABLED else None

app = FastAPI(
    title="Kirana Billing API",
    description="GST invoicing, khata and dashboard for small merchants",
    version=VERSION,
    docs_url=docs_url,
    redoc_url=redoc_url,
    lifespan=lifespan,
)

allowed_origins = [settings.FRONTEND_URL]
if not settings.is_production:
    allowed_origins.extend([
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",  # Alternative dev port
    ])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID", "X-Request-ID"],
)
app.add_middleware(CorrelationIdMiddleware)

handlers = create_exception_handlers()
app.add_exception_handler(BillingException, handlers["billing"])
app.add_exception_handler(StarletteHTTPException, handlers["http"])
app.add_exception_handler(RequestValidationError, handlers["validation"])
app.add_exception_handler(Exception, handlers["generic"])

# Include routers
app.include_router(api_router, prefix="/api/v2")


@app.get("/")
async def root():
    """Root endpoint - API info."""
    response = {
        "name": "Kirana Billing API",
        "version": VERSION,
        "health": "/health",
    }
    if settings.DOCS_ENABLED:
        response["docs"] = "/docs"
    return response


@app.get("/health")
async def health_check(db: DbSession):
    """Health check endpoint."""
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except Exception as e:
        logger.error(f"Health check database error: {type(e).__name__}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "version": VERSION,
        "environment": settings.ENVIRONMENT,
        "database": database,
    }


# For running with uvicorn directly (development only)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "kirana.main:app",
        host="0.0.0.0",
        port=5001,
        reload=settings.DEBUG,
    )
