"""FastAPI application for clinic_ops."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinic_ops import __version__
from clinic_ops.api.envelope import error_content
from clinic_ops.api.middleware import RequestLoggingMiddleware
from clinic_ops.api.routes import (
    audit,
    availability,
    bookability,
    booking,
    contracts,
    drafting,
    engagement,
    finance,
    health,
    payers,
    practiceq,
    providers,
    supervision,
)
from clinic_ops.config import Settings, get_settings
from clinic_ops.core.database import Database
from clinic_ops.core.errors import ClinicOpsError
from clinic_ops.integrations.email import EmailService
from clinic_ops.integrations.practiceq import PracticeQClient
from clinic_ops.llm.anthropic_llm import AnthropicLLM

logger = logging.getLogger(__name__)


def build_llm(settings: Settings) -> Optional[AnthropicLLM]:
    if not settings.has_anthropic_key:
        logger.warning("ANTHROPIC_API_KEY not set; article drafting disabled")
        return None
    return AnthropicLLM(
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        timeout=settings.anthropic_timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting clinic_ops API")
    settings = app.state.settings

    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database(settings.database_url)

    logger.info("clinic_ops API started successfully")

    yield

    logger.info("Shutting down clinic_ops API")
    if app.state.practiceq is not None:
        await app.state.practiceq.aclose()
    if owns_database:
        await app.state.database.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Clinic Ops API",
        description="Booking, credentialing bookability and engagement services",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.dependency_overrides[get_settings] = lambda: settings
    app.state.llm = build_llm(settings)
    app.state.practiceq = PracticeQClient(settings) if settings.has_practiceq_key else None
    app.state.email = EmailService(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health.router, tags=["health"])
    app.include_router(bookability.router, prefix="/api", tags=["bookability"])
    app.include_router(availability.router, prefix="/api", tags=["availability"])
    app.include_router(booking.router, prefix="/api/patient-booking", tags=["booking"])
    app.include_router(engagement.router, prefix="/api/patients", tags=["engagement"])
    app.include_router(payers.router, prefix="/api/admin/payers", tags=["payers"])
    app.include_router(providers.router, prefix="/api/admin/providers", tags=["providers"])
    app.include_router(contracts.router, prefix="/api/admin/contracts", tags=["contracts"])
    app.include_router(supervision.router, prefix="/api/admin/supervision", tags=["supervision"])
    app.include_router(drafting.router, prefix="/api/admin/drafting", tags=["drafting"])
    app.include_router(practiceq.router, prefix="/api/admin/practiceq", tags=["practiceq"])
    app.include_router(finance.router, prefix="/api/admin/finance", tags=["finance"])
    app.include_router(audit.router, prefix="/api/admin/audit", tags=["audit"])

    @app.exception_handler(ClinicOpsError)
    async def clinic_ops_error_handler(request: Request, exc: ClinicOpsError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_content(exc.message, exc.code, exc.details),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_content(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = [
            {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=error_content("Validation failed", "VALIDATION_ERROR", fields),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content=error_content(
                "Internal server error",
                details=str(exc) if settings.debug_mode else None,
            ),
        )

    return app
