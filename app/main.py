from typing import Annotated
from fastapi import Depends, FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import AsyncSessionLocal, get_db, init_db
from app.core.errors import register_error_handlers
from app.core.limiter import limiter
from app.features.users.routes import router as user_router
from app.features.organizations.routes import router as organization_router
from app.features.permissions.routes import router as permission_router
from app.features.permissions.registry import SYSTEM_ROLE_NAMES
from app.features.permissions.storage import AuthorizationStore
from app.features.leads.routes import router as lead_router
from app.utils import get_logger


API_VERSION = "0.1.0"

log = get_logger(__name__)
log.info("Initializing sales CRM API")
app = FastAPI(
    title="Sales CRM Backend",
    description="Multi-tenant sales CRM API with organization-scoped RBAC",
    version=API_VERSION,
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
app.state.limiter = limiter


class LogTimings(TimingClient):
    """Reports per-route latency at debug level."""

    def timing(self, metric_name, timing, tags):
        log.debug("route=%s seconds=%.4f tags=%s", metric_name.removeprefix("crm.app.features."), timing, tags)


app.add_middleware(TimingMiddleware, client=LogTimings(), metric_namer=StarletteScopeToName("crm", app))

if config.ENABLE_DOCS:
    log.warning("API docs are exposed at /docs")
if config.ALLOW_ORIGIN:
    log.warning("CORS enabled for origin %s", config.ALLOW_ORIGIN)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.ALLOW_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    # Flatten to {field: message}
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        field = error["loc"][-1]
        if field == "__root__":
            field = "root"
        errors[field] = error["msg"]
    log.info("Rejected request payload: %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"detail": "Too many requests"}, status_code=429)


register_error_handlers(app)


@app.on_event("startup")
async def startup():
    """Create missing tables and check that the system roles are seeded."""
    await init_db()

    async with AsyncSessionLocal() as db:
        store = AuthorizationStore(db)
        missing = sorted([
            name for name in SYSTEM_ROLE_NAMES
            if await store.get_role_by_name_and_org(name, None) is None
        ])
    if missing:
        log.warning(
            "System roles not seeded (%s); run scripts/seed_permissions.py. "
            "Members holding these roles resolve to no permissions.",
            ", ".join(missing)
        )
    else:
        log.info("Database ready, system roles present")


@app.get("/")
async def root():
    """Service description."""
    return {
        "message": "Sales CRM Backend API",
        "version": API_VERSION,
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": "Bearer token whose subject is the user id",
        "organization": "X-Organization-Id header or ?organization_id=, else the primary organization",
        "roles": sorted(SYSTEM_ROLE_NAMES),
    }


@app.get("/health")
async def health(db: Annotated[AsyncSession, Depends(get_db)]):
    """Liveness plus a database round trip."""
    await db.execute(text("SELECT 1"))
    return {"status": "healthy"}


app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(organization_router, prefix="/organizations", tags=["organizations"])
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])
app.include_router(lead_router, prefix="/leads", tags=["leads"])
