"""Application configuration and router setup."""

import logging
from typing import Optional

import fastapi
from fastapi import Request
from fastapi.middleware import cors
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from components.core import schemas
from components.core.exceptions import (
    InvalidDetails,
    InvalidRecurrence,
    InvalidTransition,
    NotFound,
    PartialFailure,
    StoreTimeout,
)
from restapi.endpoints import health_check, maintenance, stock

logger = logging.getLogger(__name__)


def _error(status_code: int, detail: str, ledger_entry_id: Optional[int] = None) -> JSONResponse:
    body = schemas.ErrorResponse(detail=detail, ledger_entry_id=ledger_entry_id)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app: fastapi.FastAPI) -> None:
    """Map domain errors to HTTP responses."""

    @app.exception_handler(NotFound)
    async def not_found_handler(request: Request, exc: NotFound):
        return _error(404, str(exc))

    @app.exception_handler(InvalidRecurrence)
    async def invalid_recurrence_handler(request: Request, exc: InvalidRecurrence):
        return _error(422, str(exc))

    @app.exception_handler(InvalidDetails)
    async def invalid_details_handler(request: Request, exc: InvalidDetails):
        return _error(422, str(exc))

    @app.exception_handler(InvalidTransition)
    async def invalid_transition_handler(request: Request, exc: InvalidTransition):
        return _error(409, str(exc))

    @app.exception_handler(PartialFailure)
    async def partial_failure_handler(request: Request, exc: PartialFailure):
        return _error(502, str(exc), exc.ledger_entry_id)

    @app.exception_handler(StoreTimeout)
    async def store_timeout_handler(request: Request, exc: StoreTimeout):
        logger.warning(f"{request.method} {request.url.path}: {exc}")
        return _error(504, f"{exc}; re-check state before retrying")


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application."""
    app = fastapi.FastAPI(
        title="Garden Maintenance",
        description="Maintenance plan scheduling and execution ledger",
        version="1.0.0",
    )

    # Add CORS middleware
    app.add_middleware(
        cors.CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(health_check.router)
    app.include_router(maintenance.router)
    app.include_router(stock.router)

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        openapi_schema = get_openapi(
            title="Garden Maintenance",
            version="1.0.0",
            description="Maintenance plan scheduling and execution ledger",
            routes=app.routes,
        )
        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    return app
