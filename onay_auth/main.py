"""
FastAPI application factory.

Builds the app with its routers and handlers.  The database schema
itself comes from the Alembic migration.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from onay_auth.controllers.admin_controller import router as admin_router
from onay_auth.controllers.auth_controller import router as auth_router
from onay_auth.core.config import settings
from onay_auth.core.database import engine
from onay_auth.models import Base  # noqa: F401  registers every table

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # ── CORS (credentials-compatible for the auth cookie) ────────────
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # ── Register routers ─────────────────────────────────────────────
    app.include_router(auth_router)
    app.include_router(admin_router)

    # ── Storage failures → generic 500 ───────────────────────────────
    @app.exception_handler(SQLAlchemyError)
    async def on_storage_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("Storage failure on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # ── Startup / Shutdown ───────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "Login rate limit: %s attempts per %ss (%s store)",
            settings.LOGIN_RATE_LIMIT_MAX,
            settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
            "redis" if settings.REDIS_URL else "in-memory",
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await engine.dispose()
        logger.info("Database engine disposed.")

    # ── Health check ─────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
