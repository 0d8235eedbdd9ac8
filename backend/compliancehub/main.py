import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware

from compliancehub.config import settings
from compliancehub.database import check_db_connection
from compliancehub.middleware.audit_auto import install_audit_listeners, set_audit_context
from compliancehub.routers.answer_library import router as answer_library_router
from compliancehub.routers.audit import router as audit_router
from compliancehub.routers.auth import router as auth_router
from compliancehub.routers.compliance import router as compliance_router
from compliancehub.routers.compliance_assessment import router as compliance_assessment_router
from compliancehub.routers.compliance_evidence import router as compliance_evidence_router
from compliancehub.routers.compliance_selection import router as compliance_selection_router
from compliancehub.routers.compliance_structure import router as compliance_structure_router
from compliancehub.routers.control import router as control_router
from compliancehub.routers.dashboard import router as dashboard_router
from compliancehub.routers.evidence import router as evidence_router
from compliancehub.routers.framework import router as framework_router
from compliancehub.routers.organization import router as organization_router
from compliancehub.routers.questionnaire import router as questionnaire_router
from compliancehub.routers.task import router as task_router
from compliancehub.routers.user import router as user_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("compliancehub")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── Install automatic audit logging ──
install_audit_listeners()


class AuditContextMiddleware(BaseHTTPMiddleware):
    """Set per-request audit context (user, IP) for automatic audit logging."""

    async def dispatch(self, request: Request, call_next):
        ip = request.client.host if request.client else None
        set_audit_context(
            user_id=request.session.get("user_id"),
            ip_address=ip,
        )
        return await call_next(request)


# must stay inside SessionMiddleware (reads request.session)
app.add_middleware(AuditContextMiddleware)

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    session_cookie=settings.SESSION_COOKIE,
    max_age=settings.SESSION_MAX_AGE,
    same_site="lax",
    https_only=False,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error envelope: every failure is {"error": "..."} ──

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path", "form"))
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "error": f"{field}: {message}" if field else message,
            "details": [
                {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
                for e in errors
            ],
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(auth_router)
app.include_router(user_router)
app.include_router(organization_router)
app.include_router(compliance_router)
app.include_router(compliance_structure_router)
app.include_router(compliance_selection_router)
app.include_router(compliance_evidence_router)
app.include_router(compliance_assessment_router)
app.include_router(framework_router)
app.include_router(control_router)
app.include_router(evidence_router)
app.include_router(task_router)
app.include_router(questionnaire_router)
app.include_router(answer_library_router)
app.include_router(dashboard_router)
app.include_router(audit_router)


@app.get("/health")
async def health():
    """Health check — verifies API is running and database is reachable."""
    try:
        await check_db_connection()
        db_status = "connected"
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        db_status = f"error: {exc}"

    return {
        "status": "ok" if db_status == "connected" else "degraded",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": db_status,
    }
