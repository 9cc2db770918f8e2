"""
Error handling and sanitization

- AuthFlowError -> uniform {"success": false, "message": ...} envelope
- Request validation errors -> 400 with the same envelope
- Anything else -> logged with traceback, generic 500 to the client
"""
import logging
import traceback

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from authflow.core.config import settings
from authflow.core.exceptions import AuthFlowError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def failure_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
    )


async def authflow_error_handler(request: Request, exc: AuthFlowError) -> JSONResponse:
    """Convert domain errors raised by handlers into failure responses."""
    logger.info(f"{request.method} {request.url.path} failed: {exc.to_dict()}")
    return failure_response(exc.status_code, exc.message)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies get the same envelope as missing fields."""
    logger.info(f"{request.method} {request.url.path} rejected: malformed request body")
    return failure_response(400, "Invalid request body")


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Middleware to catch unhandled exceptions and sanitize error responses.

    - In production: Returns generic error, logs full details
    - In development: Returns full error for debugging
    """

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except HTTPException:
            # Let FastAPI handle HTTPExceptions normally
            raise
        except Exception as e:
            error_id = f"{request.client.host if request.client else 'unknown'}-{id(e)}"
            logger.error(
                f"Unhandled exception [{error_id}]: {type(e).__name__}: {str(e)}\n"
                f"Path: {request.url.path}\n"
                f"Method: {request.method}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            if settings.DEBUG:
                return JSONResponse(
                    status_code=500,
                    content={
                        "success": False,
                        "message": str(e),
                        "type": type(e).__name__,
                        "error_id": error_id,
                    }
                )
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "message": GENERIC_ERROR_MESSAGE,
                    "error_id": error_id,
                }
            )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthFlowError, authflow_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
