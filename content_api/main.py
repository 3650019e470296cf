"""
Social Content API — entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP)
  2. Create the DB engine (TiDB) and session factory
  3. Create tables if not present
  4. Wire the entity store, aggregation engine and identity resolver
  5. Expose Prometheus /metrics endpoint
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from content_api.aggregation import ContentEngine
from content_api.config import settings
from content_api.database import build_engine, build_session_factory, init_db
from content_api.errors import ContentApiError
from content_api.identity import AuthConfig, IdentityResolver
from content_api.routers import comments, posts, tags, users
from content_api.store import SqlEntityStore
from content_api.telemetry import instrument_app, instrument_engine, setup_tracing

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Set up tracing before the app is created so all imports are instrumented
setup_tracing()


def attach_services(
    app: FastAPI,
    sessions: async_sessionmaker[AsyncSession],
    identity: IdentityResolver,
) -> None:
    """Put the per-process services on app.state, where the dependencies find them."""
    store = SqlEntityStore(sessions)
    app.state.store = store
    app.state.engine = ContentEngine(store, settings.assembly_concurrency)
    app.state.identity = identity


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown of the database connection pool."""
    logger.info("Starting Social Content API (env=%s)", settings.environment)

    db_engine = build_engine()
    instrument_engine(db_engine)
    await init_db(db_engine)
    attach_services(
        app,
        build_session_factory(db_engine),
        IdentityResolver(AuthConfig.from_settings(settings)),
    )

    logger.info("All services connected. API ready.")
    yield

    logger.info("Shutting down...")
    await db_engine.dispose()


async def handle_content_error(request: Request, exc: ContentApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Social Content API",
        description=(
            "Posts, tags, threaded comments, likes and follows, served as "
            "denormalized views with counts computed on read."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # ── Errors ─────────────────────────────────────────────────────────────
    app.add_exception_handler(ContentApiError, handle_content_error)

    # ── Routers ────────────────────────────────────────────────────────────
    app.include_router(users.router, prefix="/users", tags=["Users"])
    app.include_router(posts.router, prefix="/posts", tags=["Posts"])
    app.include_router(comments.router, prefix="/posts/{post_id}/comments", tags=["Comments"])
    app.include_router(tags.router, prefix="/tags", tags=["Tags"])

    # ── Prometheus metrics endpoint ────────────────────────────────────────
    # Scraped by Prometheus
    app.mount("/metrics", make_asgi_app())

    # ── OTel FastAPI instrumentation ───────────────────────────────────────
    instrument_app(app)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "service": settings.service_name}

    return app


app = create_app()
