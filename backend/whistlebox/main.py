from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from whistlebox.core.config import Settings, get_settings
from whistlebox.core.crypto import build_cipher
from whistlebox.core.logging import setup_logging
from whistlebox.core.exceptions import (
    WhistleboxError,
    domain_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from whistlebox.db.complaint_store import ComplaintStore
from whistlebox.db.session import build_engine, build_sessionmaker, init_models
from whistlebox.services.auth import build_auth_verifier
from whistlebox.services.complaint_service import ComplaintService
from whistlebox.services.ledger import AnchorService, build_ledger_client
from whistlebox.services.track_guard import TrackAttemptGuard

logger = structlog.get_logger()


def build_complaint_service(settings: Settings, engine: AsyncEngine) -> ComplaintService:
    """
    Wire the process-scoped handles. Nothing below this point reads settings.
    """
    return ComplaintService(
        store=ComplaintStore(build_sessionmaker(engine)),
        cipher=build_cipher(settings.ENCRYPTION_KEY),
        anchor_service=AnchorService(
            build_ledger_client(settings),
            timeout_seconds=settings.ANCHOR_TIMEOUT_SECONDS,
        ),
        anchor_policy=settings.ANCHOR_POLICY,
        track_guard=TrackAttemptGuard(
            max_failures=settings.TRACK_MAX_FAILURES,
            window_seconds=settings.TRACK_FAILURE_WINDOW_SECONDS,
        ),
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifecycle manager for the application.
        """
        engine = build_engine(settings.DATABASE_URL, echo=settings.ENVIRONMENT == "development")
        await init_models(engine)
        app.state.complaint_service = build_complaint_service(settings, engine)
        app.state.auth_verifier = build_auth_verifier(settings)
        logger.info(
            "startup",
            project=settings.PROJECT_NAME,
            anchor_policy=settings.ANCHOR_POLICY.value,
            ledger_enabled=settings.ledger_enabled,
        )
        yield
        await app.state.auth_verifier.aclose()
        await engine.dispose()
        logger.info("shutdown")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="Anonymous complaint intake with tamper-evident commitments",
        lifespan=lifespan,
        docs_url=f"{settings.API_V1_STR}/docs",
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception Handlers
    app.add_exception_handler(WhistleboxError, domain_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/health", tags=["system"])
    async def health_check():
        """
        Public health check endpoint for load balancers.
        """
        return {"status": "ok", "environment": settings.ENVIRONMENT}

    from whistlebox.api.v1.public import complaints as public_complaints
    from whistlebox.api.v1.admin import complaints as admin_complaints

    app.include_router(public_complaints.router, prefix=f"{settings.API_V1_STR}/public", tags=["public"])
    app.include_router(admin_complaints.router, prefix=f"{settings.API_V1_STR}/admin/complaints", tags=["admin"])

    return app
