import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from claim_calendar import __version__
from claim_calendar.api.routers import auth, claims, memory
from claim_calendar.claims.tracker import ClaimTracker
from claim_calendar.main import build_tracker, load_config
from claim_calendar.monday.client import AuthError, MondayError, NotFoundError, RemoteError

logger = logging.getLogger(__name__)


class HealthStatus(BaseModel):
    status: str
    version: str


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    tracker = build_tracker(load_config())
    app.state.tracker = tracker
    if tracker.monday_client.api_key:
        try:
            await tracker.validate_api_key(tracker.monday_client.api_key)
        except MondayError as e:
            logger.warning(f"MONDAY_API_KEY could not be validated: {e}")
    else:
        await tracker.restore_api_key()
    async with tracker.monday_client:
        yield


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message})


def create_app(tracker: Optional[ClaimTracker] = None) -> FastAPI:
    """Build the API; a given tracker skips the startup wiring"""
    app = FastAPI(title="Claim Calendar API", lifespan=None if tracker else lifespan)
    if tracker is not None:
        app.state.tracker = tracker

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AuthError)
    async def auth_error_handler(_request: Request, exc: AuthError) -> JSONResponse:
        return _error(401, str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(RemoteError)
    async def remote_error_handler(_request: Request, exc: RemoteError) -> JSONResponse:
        status_code = 401 if exc.status_code == 401 else 502
        return _error(status_code, exc.message)

    @app.exception_handler(ValueError)
    async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
        return _error(400, str(exc))

    # Create shared API v1 router
    api_v1 = APIRouter(prefix="/api/v1")

    @api_v1.get("/health")
    async def health_check() -> HealthStatus:
        """Return health status of the API."""
        return HealthStatus(status="healthy", version=__version__)

    api_v1.include_router(auth.router)
    api_v1.include_router(claims.router)
    api_v1.include_router(memory.router)

    app.include_router(api_v1)
    return app


app = create_app()
