from contextlib import asynccontextmanager
import logging

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .config import API_PREFIX
from .db import Storage
from .dependencies import build_services
from .exceptions import DomainException, ProblemDetail, StorageFailure
from .routers import matches, reference
from .services.remote import RemoteAuthority
from .utils.sentry import init_sentry

logger = logging.getLogger(__name__)

init_sentry()


# -----------------------------------------------------------------------------
# Error handling
# -----------------------------------------------------------------------------
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    problem = ProblemDetail(
        type=exc.type,
        title=exc.title,
        detail=exc.detail,
        status=exc.status_code,
        code=exc.code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=problem.model_dump(),
        media_type="application/problem+json",
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    code = getattr(exc, "code", f"http_{exc.status_code}")
    problem = ProblemDetail(
        title=detail,
        detail=detail,
        status=exc.status_code,
        code=code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=problem.model_dump(),
        media_type="application/problem+json",
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", exc_info=(type(exc), exc, exc.__traceback__))
    problem = ProblemDetail(
        title="Internal Server Error",
        status=500,
        detail=str(exc),
        code="internal_server_error",
    )
    return JSONResponse(
        status_code=500,
        content=problem.model_dump(),
        media_type="application/problem+json",
    )


# -----------------------------------------------------------------------------
# FastAPI app
# -----------------------------------------------------------------------------
def create_app(
    storage: Storage | None = None,
    remote: RemoteAuthority | None = None,
) -> FastAPI:
    """Build the device API around a storage handle and remote client.

    Handles passed in are left open on shutdown; the ones created here are
    opened and closed with the application lifespan.
    """

    owns_storage = storage is None
    owns_remote = remote is None
    storage = storage or Storage()
    remote = remote or RemoteAuthority()
    services = build_services(storage, remote)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not storage.is_open:
            await storage.open()
        try:
            expired = await services.live.housekeeping()
            if expired:
                logger.info("Expired %d stale matches on startup", len(expired))
            await services.temp_players.cleanup_expired()
        except StorageFailure as exc:
            logger.warning("Startup housekeeping skipped: %s", exc.detail)
        try:
            yield
        finally:
            if owns_remote:
                await remote.aclose()
            if owns_storage:
                await storage.close()

    app = FastAPI(
        title="Courtside Device API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/healthz", tags=["health"])  # Unprefixed for uptime checks
    def root_healthz():
        return {"status": "ok"}

    api_router = APIRouter(prefix=API_PREFIX, tags=["meta"])

    @api_router.get("/healthz", tags=["health"])
    def api_healthz():
        return {"status": "ok", "storage": "open" if storage.is_open else "closed"}

    api_router.include_router(matches.router)
    api_router.include_router(matches.teams_router)
    api_router.include_router(reference.router)
    app.include_router(api_router)
    return app


logger.info("API_PREFIX=%r", API_PREFIX)

app = create_app()
