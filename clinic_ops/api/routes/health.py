"""Health check endpoints."""

import logging

from fastapi import APIRouter, Query, Request

from clinic_ops import __version__

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {
        "status": "healthy",
        "service": "clinic-ops",
        "version": __version__,
    }


@router.get("/health/ready")
async def readiness_check(
    request: Request,
    check_llm: bool = Query(False, description="Also round-trip a tiny request to the LLM"),
) -> dict:
    """Readiness check - verifies the database answers, and optionally the LLM."""
    errors = []
    llm = request.app.state.llm

    try:
        await request.app.state.database.ping()
    except Exception as e:
        logger.warning(f"Database readiness check failed: {e}")
        errors.append(f"Database check failed: {e}")

    # Opt-in; each LLM check is a billed completion.
    if check_llm and llm is not None and not await llm.health_check():
        errors.append(f"LLM check failed: {llm.provider} {llm.model_name} did not answer")

    if errors:
        return {
            "status": "not_ready",
            "errors": errors,
        }

    return {
        "status": "ready",
        "practiceq_configured": request.app.state.practiceq is not None,
        "llm_configured": llm is not None,
        "email_configured": request.app.state.email.enabled,
    }


@router.get("/health/live")
async def liveness_check() -> dict:
    """Liveness check - basic process health."""
    return {"status": "alive"}
