import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timetiles.core.config import settings
from timetiles.core.errors import ImportValidationError, StageTransitionError
from timetiles.core.logging import configure_logging, logger
from timetiles.api.router import api_router
from timetiles.db.session import engine
from timetiles.db.base import Base
import timetiles.db.models  # noqa: F401


def create_app() -> FastAPI:
    configure_logging(settings.ENV)
    app = FastAPI(title="TimeTiles import pipeline", version="0.1.0")

    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_request_id(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response

    @app.exception_handler(StageTransitionError)
    async def stage_transition_error(request: Request, exc: StageTransitionError):
        logger.warning("stage_transition_rejected", error=str(exc))
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(ImportValidationError)
    async def import_validation_error(request: Request, exc: ImportValidationError):
        return JSONResponse(status_code=422, content={"detail": exc.errors})

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        # dev only; every other environment runs alembic
        if settings.ENV == "dev":
            Base.metadata.create_all(bind=engine)

    app.include_router(api_router, prefix=settings.API_PREFIX)
    logger.info("app_started", env=settings.ENV, api_prefix=settings.API_PREFIX or "/")
    return app

app = create_app()
