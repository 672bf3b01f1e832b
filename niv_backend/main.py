"""NIV Onboarding Service: FastAPI entry point."""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from niv_backend.api.errors import ERROR_RESPONSES, register_exception_handlers
from niv_backend.api.routes import onboardings, patients, qualifications, rules
from niv_backend.config.logging_config import get_logger, setup_logging
from niv_backend.config.request_context import correlation_id_var
from niv_backend.config.settings import get_settings
from niv_backend.rules.rule_table import RULE_TABLES, diff_rule_tables, get_rule_table

settings = get_settings()
setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)
logger = get_logger(__name__)

VERSION = "0.1.0"


def log_rule_table_discrepancies(active_version: str) -> int:
    """Warn about every category where another rule table disagrees with the active one."""
    active = get_rule_table(active_version)
    reported = 0
    for version, table in RULE_TABLES.items():
        if version == active.version:
            continue
        for category, diff in diff_rule_tables(active, table).items():
            logger.warning(
                "Rule table discrepancy",
                active_version=active.version,
                other_version=version,
                category=category,
                only_in_active=diff["only_in_active"],
                only_in_other=diff["only_in_other"],
            )
            reported += 1
    return reported


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: credentials check, database, reference data, EHR client."""
    logger.info("Starting NIV Onboarding Service", ehr_mode=settings.ehr_mode, persistence=settings.persistence)

    settings.require_ehr_credentials()

    active_table = get_rule_table(settings.rule_table_version)
    log_rule_table_discrepancies(active_table.version)

    if settings.persistence == "sql":
        from niv_backend.storage.database import init_db
        from niv_backend.storage.seed_criteria import seed_qualification_criteria

        await init_db()
        logger.info("Database initialized")
        seeded = await seed_qualification_criteria(active_table)
        if seeded:
            logger.info("Qualification criteria seeded", count=seeded, version=active_table.version)

    yield

    logger.info("Shutting down NIV Onboarding Service")

    if settings.ehr_mode == "pcc":
        from niv_backend.ehr.pcc_client import close_pcc_client
        await close_pcc_client()
        logger.info("PCC client closed")

    if settings.persistence == "sql":
        from niv_backend.storage.database import dispose_db
        await dispose_db()


app = FastAPI(
    title="NIV Onboarding Service",
    description="NIV eligibility assessment and onboarding workflow backed by PointClickCare",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "X-Requested-With", "X-Correlation-ID"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    token = correlation_id_var.set(correlation_id)
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
    try:
        response = await call_next(request)
    finally:
        structlog.contextvars.unbind_contextvars("correlation_id")
        correlation_id_var.reset(token)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


register_exception_handlers(app)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_id = str(uuid.uuid4())[:8]
    logger.error("Unhandled exception", error_id=error_id, error=str(exc), path=request.url.path, exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "error_id": error_id})


# Routes
app.include_router(patients.router, prefix="/api/v1", responses=ERROR_RESPONSES)
app.include_router(onboardings.router, prefix="/api/v1", responses=ERROR_RESPONSES)
app.include_router(qualifications.router, prefix="/api/v1", responses=ERROR_RESPONSES)
app.include_router(rules.router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
        "platform": "niv-onboarding",
        "components": {
            "ehr_mode": settings.ehr_mode,
            "persistence": settings.persistence,
            "rule_table_version": settings.rule_table_version,
        },
    }


@app.get("/")
async def root():
    return {
        "name": "NIV Onboarding Service",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("niv_backend.main:app", host="0.0.0.0", port=8000, reload=True)
