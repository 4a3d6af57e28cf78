"""
api/main.py -- FastAPI application entry point for the Results API.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost first, as a request meets it):
  1. log_requests          -- method, path, status, latency, client
  2. format_suffix         -- strips .json/.xml from /api/ paths, records the format
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. CORSMiddleware        -- adds CORS headers for allowed browser origins
  5. TrustedHostMiddleware -- rejects requests with unexpected Host headers

Lifespan opens the database engine, wires repositories and services into
app.state, and disposes the engine on shutdown.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import HealthResponse
from api.representation import error_response, negotiate_format
from api.routes.v1.results import router as results_router
from api.routes.v1.security import router as security_router
from api.routes.v1.users import router as users_router
from auth.store import UserStore
from core.config import get_settings
from core.database import create_db_engine
from core.errors import ApiError, Unauthenticated
from results.store import ResultStore
from services.results import ResultsService
from services.users import UsersService

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("resultsapi.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# State wiring
# ---------------------------------------------------------------------------


def init_state(app: FastAPI, engine: Engine) -> None:
    """Attach repositories and services built on `engine` to app.state.

    Shared by the real lifespan and the test fixtures so both wire the
    application the same way.
    """
    app.state.engine = engine
    app.state.user_store = UserStore(engine)
    app.state.result_store = ResultStore(engine)
    app.state.users_service = UsersService(app.state.user_store)
    app.state.results_service = ResultsService(app.state.result_store, app.state.user_store)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the database on startup, dispose of it on shutdown."""
    logger.info("Results API starting up")
    engine = create_db_engine(_settings.database_url)
    init_state(app, engine)
    if not app.state.user_store.has_users():
        logger.warning("No users registered -- create one with: python main.py create-user EMAIL PASSWORD --admin")

    yield

    engine.dispose()
    logger.info("Results API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Results API",
    description="Users and their results, behind JWT authentication.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette wraps middleware so that the most recently registered one is the
# outermost. The two @app.middleware functions below are registered last and
# therefore see the request first.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
    expose_headers=["ETag", "Location", "X-Token", "Allow"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Format suffix middleware
#
# /api/v1/users/3.xml is routed as /api/v1/users/3 with request.state.format
# set to "xml"; api.representation.negotiate_format() reads it back. The route
# table therefore only declares suffix-less paths.
# ---------------------------------------------------------------------------

_FORMAT_SUFFIX = re.compile(r"\.(json|xml)$")


@app.middleware("http")
async def format_suffix(request: Request, call_next):
    path = request.scope["path"]
    match = _FORMAT_SUFFIX.search(path)
    if match and path.startswith("/api/"):
        request.state.format = match.group(1)
        request.scope["path"] = path[: match.start()]
    return await call_next(request)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(security_router, prefix="/api/v1", tags=["Security"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(results_router, prefix="/api/v1", tags=["Results"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {code, message} envelope, in the negotiated
# format, so clients parse every error the same way.
# ---------------------------------------------------------------------------


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    """Render a business error raised by a service, the policy or the token verifier."""
    logger.info("%s %s -> %d (%s)", request.method, request.url.path, exc.status_code, exc.detail or exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return error_response(exc.status_code, negotiate_format(request), headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return 422 when the body or a parameter cannot be parsed into the expected types."""
    logger.info("%s %s -> 422 (%s)", request.method, request.url.path, exc.errors())
    return error_response(422, negotiate_format(request))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Unknown routes (404) and unsupported methods (405) from the router."""
    return error_response(exc.status_code, negotiate_format(request), exc.headers)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Return 429 when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = error_response(429, negotiate_format(request))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    Write failures that slip past the service pre-checks (e.g. a UNIQUE
    violation from a concurrent duplicate) end up here as 500.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(500)


# ---------------------------------------------------------------------------
# Health endpoint
#
# Public, not rate limited: load balancers and monitors must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    database = "ok"
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check could not reach the database")
        database = "error"
    return HealthResponse(version=__version__, components={"app": "ok", "database": database})
