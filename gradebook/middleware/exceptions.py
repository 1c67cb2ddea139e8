from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from gradebook.core.exceptions import GradebookError, GradingUnavailableError, StatisticsNotFinalError
from gradebook.schemas.response import ErrorResponse, ErrorInfo
from datetime import datetime, timezone
import logging
import uuid

logger = logging.getLogger(__name__)

def _get_error_code(status_code: int) -> str:
    code_map = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_SERVER_ERROR",
        503: "SERVICE_UNAVAILABLE",
    }
    return code_map.get(status_code, f"HTTP_{status_code}")

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())

def _error_response(request: Request, request_id: str, status_code: int, code: str, message: str, details=None):
    error_response = ErrorResponse(
        error=ErrorInfo(code=code, message=message, details=details),
        timestamp=datetime.now(timezone.utc).isoformat(),
        path=request.url.path,
        request_id=request_id
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(error_response))

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = _request_id(request)
    logger.warning(f"[{request_id}] Validation error: {exc.errors()}", extra={"request_id": request_id})
    return _error_response(
        request, request_id, 422, "VALIDATION_ERROR", "Request validation failed",
        details={"validation_errors": exc.errors()}
    )

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    request_id = _request_id(request)
    logger.warning(f"[{request_id}] HTTP {exc.status_code}: {exc.detail}", extra={"request_id": request_id})
    return _error_response(
        request, request_id, exc.status_code, _get_error_code(exc.status_code),
        exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    )

async def gradebook_exception_handler(request: Request, exc: GradebookError):
    request_id = _request_id(request)
    if isinstance(exc, StatisticsNotFinalError):
        status_code = 409
    elif isinstance(exc, GradingUnavailableError):
        status_code = 503
    else:
        status_code = 500
    logger.warning(f"[{request_id}] {type(exc).__name__}: {exc}", extra={"request_id": request_id})
    return _error_response(
        request, request_id, status_code, _get_error_code(status_code), str(exc),
        details={"error_type": type(exc).__name__}
    )

async def global_exception_handler(request: Request, exc: Exception):
    request_id = _request_id(request)
    logger.error(f"[{request_id}] Unhandled exception: {exc}", exc_info=True, extra={"request_id": request_id})
    return _error_response(
        request, request_id, 500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred",
        details={"error_type": type(exc).__name__}
    )
