"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from http import HTTPStatus

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from hrms.api.routes import (
    auth_router,
    health_router,
    manager_router,
    payroll_admin_router,
    payroll_employee_router,
    timesheets_router,
)
from hrms.config import Settings, get_settings
from hrms.database import create_engine, create_schema, create_session_factory
from hrms.exceptions import (
    ForbiddenError,
    HrmsError,
    NotFoundError,
    StateConflictError,
    UnauthorizedError,
    ValidationError,
)
from hrms.services.token_service import run_token_purge_loop

logger = logging.getLogger(__name__)

ERROR_STATUS: list[tuple[type[HrmsError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (StateConflictError, status.HTTP_409_CONFLICT),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
]


def status_for(exc: HrmsError) -> int:
    """HTTP status for a domain error's category."""
    for category, code in ERROR_STATUS:
        if isinstance(exc, category):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(
    request: Request,
    status_code: int,
    detail: str,
    code: str,
    validation_errors: dict[str, str] | None = None,
) -> dict:
    body = {
        "detail": detail,
        "code": code,
        "status": status_code,
        "error": HTTPStatus(status_code).phrase,
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if validation_errors is not None:
        body["validationErrors"] = validation_errors
    return body


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings: Settings = app.state.settings
    if settings.create_schema:
        await create_schema(app.state.engine)

    purge_task = None
    if settings.token_purge_interval_seconds > 0:
        purge_task = asyncio.create_task(
            run_token_purge_loop(
                app.state.session_factory,
                settings,
                settings.token_purge_interval_seconds,
            )
        )

    yield

    if purge_task is not None:
        purge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purge_task
    await app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="HRMS API",
        description="Timesheets, approvals and weekly payroll",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )

    engine = create_engine(settings)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    # Exception handlers
    @app.exception_handler(HrmsError)
    async def hrms_error_handler(request: Request, exc: HrmsError) -> JSONResponse:
        """Translate domain errors to their HTTP status."""
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("Unmapped domain error %s: %s", exc.code, exc.message)
        return JSONResponse(
            status_code=status_code,
            content=error_body(request, status_code, exc.message, exc.code),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed requests as 400 with per-field messages."""
        field_errors = {
            ".".join(str(part) for part in err["loc"] if part != "body"): err["msg"]
            for err in exc.errors()
        }
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(
                request,
                status.HTTP_400_BAD_REQUEST,
                "Validation failed",
                "VALIDATION_ERROR",
                validation_errors=field_errors,
            ),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(
                request,
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "An unexpected error occurred",
                "INTERNAL_ERROR",
            ),
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(auth_router, prefix="/api")
    app.include_router(timesheets_router, prefix="/api")
    app.include_router(manager_router, prefix="/api")
    app.include_router(payroll_employee_router, prefix="/api")
    app.include_router(payroll_admin_router, prefix="/api")

    return app
