from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from .exceptions import AppointmentSystemError

logger = logging.getLogger(__name__)

def _error_response(request: Request, status_code: int, error: str, message: str, headers=None):
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "path": str(request.url.path)},
        headers=headers,
    )

def register_exception_handlers(app):
    @app.exception_handler(AppointmentSystemError)
    async def domain_error_handler(request: Request, exc: AppointmentSystemError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(f"[{type(exc).__name__}] {exc.message} | Path={request.url.path}")

        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return _error_response(request, exc.status_code, exc.error, exc.message, headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code != 404:
            return JSONResponse(
                status_code=exc.status_code,
                content={"detail": exc.detail},
                headers=getattr(exc, "headers", None),
            )
        return _error_response(
            request, 404, "Not Found", exc.detail or "The requested resource was not found"
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"[UnhandledError] Path={request.url.path}")
        return _error_response(request, 500, "Internal Server Error", "An unexpected error occurred")
