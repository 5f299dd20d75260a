"""
FastAPI application factory.

Run with:
    uvicorn codecollab.main:app --reload

Assembles the app, registers all routers, the security-monitoring
middleware and the error boundary, and wires up lifecycle events.
Database schema is managed by Alembic — NOT create_all.
"""

import logging
from datetime import timedelta

from fastapi import FastAPI

from codecollab.controllers.admin_controller import router as admin_router
from codecollab.controllers.auth_controller import router as auth_router
from codecollab.controllers.user_controller import router as user_router
from codecollab.core.config import settings
from codecollab.core.database import engine
from codecollab.core.exceptions import register_exception_handlers
from codecollab.core.rate_tracker import RateTracker
from codecollab.middleware.security_monitoring import SecurityMonitoringMiddleware
from codecollab.models import Base  # noqa: F401 — ensures all models are registered

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

    # ── Security monitoring ──────────────────────────────────────────
    app.state.request_tracker = RateTracker(
        window=timedelta(minutes=settings.REQUEST_VOLUME_WINDOW_MINUTES),
        threshold=settings.REQUEST_VOLUME_THRESHOLD,
    )
    app.state.failed_auth_tracker = RateTracker(
        window=timedelta(minutes=settings.FAILED_AUTH_WINDOW_MINUTES),
        threshold=settings.FAILED_AUTH_MAX_ATTEMPTS,
    )
    app.add_middleware(
        SecurityMonitoringMiddleware,
        request_tracker=app.state.request_tracker,
        failed_auth_tracker=app.state.failed_auth_tracker,
    )

    register_exception_handlers(app)

    # ── Register routers ─────────────────────────────────────────────
    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(admin_router)

    # ── Startup / Shutdown ───────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup() -> None:
        """Start background jobs.

        NOTE: Database schema is managed by Alembic migrations.
        Run `alembic upgrade head` before starting the app.
        """
        if not settings.SCHEDULER_ENABLED:
            logger.info("Scheduler disabled; skipping background jobs.")
            return

        from codecollab.tasks.scheduler import start_scheduler

        await start_scheduler([app.state.request_tracker, app.state.failed_auth_tracker])

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        if settings.SCHEDULER_ENABLED:
            from codecollab.tasks.scheduler import stop_scheduler

            await stop_scheduler()
        await engine.dispose()
        logger.info("Database engine disposed.")

    # ── Health check ─────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("codecollab.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
