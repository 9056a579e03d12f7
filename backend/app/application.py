# app/application.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.routes import api_router
from app.core.admin import setup_admin
from app.core.config import Settings, get_settings
from app.core.database import DatabaseHelper
from app.core.exceptions import AppException, error_body
from app.core.rate_limit import limiter
from app.core.security import TokenService
from app.core.upload_limits import MULTIPART_OVERHEAD, UploadSizeLimitMiddleware
from app.core.signing import URLSigner
from app.services.file_validation import FileValidator
from app.services.hls import HlsPackager
from app.services.mailer import Mailer
from app.services.storage import LocalFileStorage
from app.services.upload_service import UploadIngestor

logger = logging.getLogger(__name__)

HTTP_ERROR_NAMES = {404: "NotFoundError", 413: "PayloadTooLargeError"}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _masked_db_url(settings: Settings) -> str:
    url = settings.db.DATABASE_URL
    password = settings.db.DB_PASSWORD.get_secret_value()
    return url.replace(password, "***") if password else url


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; every service is constructed once and kept on app.state"""
    settings = settings or get_settings()

    db = DatabaseHelper.from_config(settings.db)
    storage = LocalFileStorage(settings.storage)
    validator = FileValidator(settings.storage)
    token_service = TokenService(settings.security)
    signer = URLSigner(
        settings.storage.SIGNED_URL_SECRET.get_secret_value(),
        default_expiry_seconds=settings.storage.SIGNED_URL_EXPIRY,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.app_name} in {'DEBUG' if settings.debug else 'PRODUCTION'} mode")
        logger.info(f"Database: {_masked_db_url(settings)}")
        logger.info(f"Upload directory: {settings.storage.UPLOAD_DIR}")

        storage.init()
        if settings.create_tables:
            await db.create_tables()

        try:
            async with db.session_factory() as session:
                await session.execute(text("SELECT 1"))
            logger.info("Database connection successful")
        except SQLAlchemyError as e:
            logger.error(f"Database connection failed: {e}")
            raise

        yield

        await db.dispose()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.db = db
    app.state.storage = storage
    app.state.validator = validator
    ingestor = UploadIngestor(storage, validator)
    app.state.ingestor = ingestor
    app.state.token_service = token_service
    app.state.signer = signer
    app.state.mailer = Mailer(settings.smtp, settings.app_url, settings.app_name)
    app.state.hls = HlsPackager(settings.storage, db)

    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter

    app.add_middleware(
        UploadSizeLimitMiddleware,
        prefix="/api/v1/uploads",
        max_body_size=ingestor.max_upload_size + MULTIPART_OVERHEAD,
        max_multiple_body_size=ingestor.max_upload_size * settings.storage.MAX_FILES_PER_REQUEST + MULTIPART_OVERHEAD,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    if settings.admin_enabled:
        setup_admin(app, db, settings, token_service)

    @app.get("/", summary="Root endpoint", tags=["root"])
    async def root():
        return {
            "message": f"Welcome to {settings.app_name} API",
            "docs": {"swagger": "/docs", "redoc": "/redoc"} if settings.debug else None,
            "environment": "development" if settings.debug else "production",
            "timestamp": _timestamp(),
        }

    @app.get("/health", summary="Health check", tags=["health"])
    async def health_check():
        try:
            async with db.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Health check failed: {e}")
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "timestamp": _timestamp(),
                    "database": "connection failed",
                    "error": str(e) if settings.debug else "Database connection error",
                },
            )
        return {
            "status": "healthy",
            "timestamp": _timestamp(),
            "environment": "development" if settings.debug else "production",
            "database": "connected",
            "app_name": settings.app_name,
        }

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        if exc.status_code >= 500:
            logger.error(f"AppException: {exc.detail} (type: {type(exc).__name__})")
        else:
            logger.info(f"AppException: {exc.detail} (type: {type(exc).__name__})")
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.detail, type(exc).__name__),
            headers=headers,
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded for {request.client.host if request.client else 'unknown'}")
        return JSONResponse(
            status_code=429,
            content=error_body(f"Rate limit exceeded: {exc.detail}", "RateLimitError"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        error = HTTP_ERROR_NAMES.get(exc.status_code, "HTTPException")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.detail, error),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                **error_body("Internal server error", "InternalServerError"),
                "debug_info": str(exc) if settings.debug else None,
            },
        )

    return app
