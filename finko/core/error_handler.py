"""
Maps every error to a `{"error": {"message": ...}}` body.
"""

import logging
from fastapi import Request
from starlette.exceptions import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


def _error_body(message: str, **extra) -> dict:
    return {"error": {"message": message, **extra}}


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    # Every application error in core.exceptions is an HTTPException
    if isinstance(exc, HTTPException):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    if isinstance(exc, RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content=_error_body("Validation failed", details=jsonable_encoder(exc.errors())),
        )

    if isinstance(exc, SQLAlchemyError):
        logger.error(f"Database error on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content=_error_body("Database operation failed"))

    logger.error(f"Unexpected error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content=_error_body("An unexpected error occurred"))
