from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .core.logging import setup_logging
from .crud import InvalidFieldError, ReferenceConflictError
from .routers import auth, dashboard, health, medications, patients, treatments
from .store import ClinicStore


def create_app(store: Optional[ClinicStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API around one store instance.

    The store lives for as long as the application does; when none is passed
    one is constructed (and seeded) from settings at startup.
    """
    settings = settings or get_settings()
    logger = setup_logging(settings.log_level, json_logs=settings.json_logs)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_store = app.state.store is None
        if owns_store:
            app.state.store = ClinicStore.from_settings(settings)
        logger.info("store.ready", environment=settings.environment, delete_policy=app.state.store.delete_policy.value)
        yield
        if owns_store:
            app.state.store.close()
            logger.info("store.closed")

    app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug, lifespan=lifespan)
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(ReferenceConflictError)
    async def reference_conflict_handler(request: Request, exc: ReferenceConflictError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"message": str(exc)})

    @app.exception_handler(InvalidFieldError)
    async def invalid_field_handler(request: Request, exc: InvalidFieldError):
        return JSONResponse(status_code=422, content={"message": str(exc)})

    app.include_router(auth.router, prefix="/api")
    app.include_router(patients.router, prefix="/api")
    app.include_router(medications.router, prefix="/api")
    app.include_router(treatments.router, prefix="/api")
    app.include_router(dashboard.router, prefix="/api")
    app.include_router(health.router, prefix="/api")

    return app


if __name__ == "__main__":
    uvicorn.run("medisync.main:create_app", factory=True, host="0.0.0.0", port=5000)
