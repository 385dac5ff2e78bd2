"""FastAPI Application Entry Point"""

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from billing_resources.api.v1 import health, user_resources, server_resources, admin_resources
from billing_resources.api.exception_handlers import register_exception_handlers
from billing_resources.api.middleware import RequestIDMiddleware, LoggingMiddleware
from billing_resources.core.config import settings
from billing_resources.core.database import init_database, close_database
from billing_resources.core.logging_config import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events"""
    await init_database()
    logger.info("application_started", app_name=settings.APP_NAME, environment=settings.ENVIRONMENT)
    yield
    await close_database()
    logger.info("application_stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan
)

register_exception_handlers(app)

# Add middleware in correct order (LIFO - last added is executed first)
# Order: Request ID -> Logging -> CORS

# 1. CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

# 2. Logging Middleware
app.add_middleware(LoggingMiddleware)

# 3. Request ID Middleware (outermost, logging reads the ID it sets)
app.add_middleware(RequestIDMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(user_resources.router, prefix="/api/v1")
app.include_router(server_resources.router, prefix="/api/v1")
app.include_router(admin_resources.router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": settings.APP_NAME, "version": settings.APP_VERSION}
