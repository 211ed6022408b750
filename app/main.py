from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import init_db
from app.features.permissions.catalog import Feature
from app.features.permissions.errors import AuthorizationError, DenyKind, UnknownFeature
from app.features.permissions.routes import router as permission_router
from app.features.schools.routes import router as school_router
from app.features.users.auth import AuthenticationMiddleware
from app.features.users.dependencies import get_authorization_header
from app.features.users.routes import router as user_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="School IT Asset Admin",
    description="Asset management backend with feature and school permissions",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
limiter = Limiter(key_func=get_authorization_header)
app.state.limiter = limiter


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))
app.add_middleware(AuthenticationMiddleware)

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


_DENIAL_STATUS = {
    DenyKind.UNAUTHENTICATED_CALLER: 401,
    DenyKind.UNKNOWN_SCOPE: 404,
    DenyKind.FEATURE_DENIED: 403,
    DenyKind.SCOPE_DENIED: 403,
}

_DENIAL_DETAIL = {
    DenyKind.UNAUTHENTICATED_CALLER: "Authentication required",
    DenyKind.UNKNOWN_SCOPE: "School not found",
    DenyKind.FEATURE_DENIED: "Permission denied for this feature",
    DenyKind.SCOPE_DENIED: "Permission denied for this school",
}


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(_request: Request, exc: AuthorizationError) -> Response:
    subject = exc.subject.name if isinstance(exc.subject, Feature) else exc.subject
    if exc.kind == DenyKind.UNAUTHENTICATED_CALLER:
        # Do not echo back which usernames have no account
        subject = None
    headers = {"WWW-Authenticate": "Bearer"} if exc.kind == DenyKind.UNAUTHENTICATED_CALLER else None
    return JSONResponse(
        status_code=_DENIAL_STATUS[exc.kind],
        content=jsonable_encoder({"detail": _DENIAL_DETAIL[exc.kind], "kind": exc.kind.value, "subject": subject}),
        headers=headers,
    )


@app.exception_handler(UnknownFeature)
async def unknown_feature_handler(_request: Request, exc: UnknownFeature) -> Response:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.on_event("startup")
async def startup():
    """Initialize database on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")


@app.get("/")
async def root(error: str | None = None):
    """Root endpoint - API health check. Redirected denials carry their reason in ?error=."""
    return {
        "message": "School IT Asset Admin API",
        "version": "0.1.0",
        "status": "online",
        "error": error,
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
        },
        "features": [feature.name for feature in Feature],
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(school_router, prefix="/schools", tags=["schools"])
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])
