"""Render domain errors as JSON responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.errors import RentalError

logger = structlog.get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Map RentalError subclasses to their status code with a `code` field."""

    @app.exception_handler(RentalError)
    async def rental_error_handler(request: Request, exc: RentalError) -> JSONResponse:
        logger.info(
            "request_rejected",
            path=request.url.path,
            status_code=exc.status_code,
            code=exc.code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )
