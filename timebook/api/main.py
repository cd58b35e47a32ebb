import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..errors import ConflictError, NotFoundError, StorageError, TimebookError, ValidationError
from ..store import TimeStore
from .routers import analytics, export, projects, time_entries, timers
from .schemas import HealthStatus

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StorageError, 500),
]


def status_code_for(error: TimebookError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    return 500


async def handle_timebook_error(_request: Request, exc: TimebookError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"Request failed: {exc}")
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


async def handle_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {details}"})


async def handle_unexpected_error(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(status_code=500, content={"error": "Something went wrong. Please try again."})


def create_app(store: TimeStore) -> FastAPI:
    """Create the API for a store built once at startup

    Args:
        store: Workbook tracker or relational client shared by every request

    """
    app = FastAPI(title="Timebook API", version=__version__)
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(TimebookError, handle_timebook_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    # Create shared API v1 router
    api_v1 = APIRouter(prefix="/api/v1")

    @api_v1.get("/health")
    async def health_check() -> HealthStatus:
        """Return health status of the API."""
        return HealthStatus(status="healthy", version=__version__)

    api_v1.include_router(projects.router)
    api_v1.include_router(time_entries.router)
    api_v1.include_router(timers.router)
    api_v1.include_router(analytics.router)
    api_v1.include_router(export.router)

    app.include_router(api_v1)
    return app
