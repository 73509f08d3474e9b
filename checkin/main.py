from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from checkin import config
from checkin.deps import Services, build_services
from checkin.errors import CheckinError
from checkin.routes_admin import router as admin_router
from checkin.routes_users import router as users_router
from checkin.routes_webhooks import router as webhooks_router

log = logging.getLogger("checkin.main")


def create_app(services: Services | None = None, *, start_background: bool = True) -> FastAPI:
    """
    Build the API. With ``services`` given (tests), nothing is opened at
    startup; otherwise the pool and every component are built from env.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        pool = None
        if app.state.services is None:
            from checkin.db import open_pool
            pool = open_pool()  # create pool once
            app.state.services = build_services(pool)
        svc: Services = app.state.services

        if start_background:
            if config.ENABLE_SCHEDULER:
                svc.scheduler.start()
            if svc.realtime is not None:
                try:
                    svc.realtime.start()
                except Exception as e:
                    log.error("Failed to initialize realtime listener: %s", e)
        try:
            yield
        finally:
            svc.scheduler.shutdown()
            if svc.realtime is not None:
                svc.realtime.stop()
            if pool is not None:
                from checkin.db import close_pool
                close_pool()

    app = FastAPI(title="Check-In API", lifespan=lifespan)
    app.state.services = services

    @app.exception_handler(CheckinError)
    async def _checkin_error(request: Request, exc: CheckinError):
        body = {"error": exc.message}
        current = getattr(exc, "current_status", None)
        if current is not None:
            body["status"] = current
        return JSONResponse(status_code=exc.status_code, content=body)

    # =========================
    # Health endpoints
    # =========================
    @app.get("/health")
    def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/health/db")
    def health_db():
        from checkin import db
        return db.ping()

    # =========================
    # Routers
    # =========================
    app.include_router(users_router)
    app.include_router(webhooks_router)
    app.include_router(admin_router)
    return app


logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
