"""
API middleware and exception handlers
"""
import time
import logging
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from predictive_api.core.config import settings

logger = logging.getLogger(__name__)

class LoggingMiddleware(BaseHTTPMiddleware):
    """Request logging middleware"""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.time()

        logger.info(f"Request started: {request.method} {request.url}")

        response = await call_next(request)

        process_time = time.time() - start_time

        logger.info(
            f"Request finished: {request.method} {request.url} "
            f"status: {response.status_code} "
            f"took: {process_time:.4f}s"
        )

        response.headers["X-Process-Time"] = str(process_time)

        return response

class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Error handling middleware"""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            response = await call_next(request)
            return response
        except Exception as e:
            logger.error(f"Unhandled error: {request.method} {request.url} - {str(e)}")

            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal Server Error",
                    "details": str(e)
                }
            )

class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies larger than MAX_REQUEST_BYTES (checked via Content-Length)"""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={"error": "Invalid Content-Length header"}
                )
            if size > settings.MAX_REQUEST_BYTES:
                logger.warning(f"Request body too large: {size} bytes (limit {settings.MAX_REQUEST_BYTES})")
                return JSONResponse(
                    status_code=413,
                    content={
                        "error": "Request body too large",
                        "details": f"{size} bytes exceeds the {settings.MAX_REQUEST_BYTES} byte limit"
                    }
                )

        return await call_next(request)

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing or ill-typed request fields are a client error"""
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in exc.errors()
    )
    logger.warning(f"Request validation failed: {request.method} {request.url} - {details}")
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": details}
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors in the same {error, details} shape"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )
