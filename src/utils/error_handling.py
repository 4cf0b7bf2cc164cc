"""
Centralized error handling and structured error logging

Domain errors are mapped to HTTP responses in one place; every logged
error carries a trace id that is also returned to the client.
"""

import json
import logging
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional, Union

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from utils.errors import CaseTrackerError

request_id_var: ContextVar[str] = ContextVar('request_id', default='')

logger = logging.getLogger(__name__)


class ErrorHandlingConfig:
    """Error handling behavior"""

    SANITIZE_SENSITIVE_FIELDS = True
    SENSITIVE_FIELD_PATTERNS = [
        'password', 'token', 'key', 'secret', 'authorization',
        'auth', 'bearer', 'credential', 'apikey'
    ]

    LOG_HEADERS = True
    MAX_BODY_LOG_SIZE = 5000

    INCLUDE_TRACE_ID = True
    INCLUDE_TIMESTAMP = True

    @classmethod
    def is_sensitive_field(cls, field_name: str) -> bool:
        field_lower = field_name.lower()
        return any(pattern in field_lower for pattern in cls.SENSITIVE_FIELD_PATTERNS)

    @classmethod
    def sanitize_data(cls, data: Union[Dict, str, Any]) -> Any:
        """Recursively redact sensitive fields before logging"""
        if not cls.SANITIZE_SENSITIVE_FIELDS:
            return data

        if isinstance(data, dict):
            return {
                key: "***REDACTED***" if cls.is_sensitive_field(str(key)) else cls.sanitize_data(value)
                for key, value in data.items()
            }
        elif isinstance(data, list):
            return [cls.sanitize_data(item) for item in data]
        elif isinstance(data, str) and len(data) > cls.MAX_BODY_LOG_SIZE:
            return data[:cls.MAX_BODY_LOG_SIZE] + "...[TRUNCATED]"
        else:
            return data


class StructuredLogger:
    """JSON error log entries with request context"""

    @staticmethod
    def log_error(
        error_type: str,
        message: str,
        request: Optional[Request] = None,
        exception: Optional[Exception] = None,
        extra_context: Optional[Dict] = None,
        include_traceback: bool = True,
        level: int = logging.ERROR,
    ) -> str:
        trace_id = request_id_var.get('') or str(uuid.uuid4())[:8]

        log_entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "trace_id": trace_id,
            "error_type": error_type,
            "message": message,
            "level": logging.getLevelName(level),
        }

        if request:
            headers = dict(request.headers)
            log_entry["request"] = {
                "method": request.method,
                "path": request.url.path,
                "query_params": dict(request.query_params),
                "headers": ErrorHandlingConfig.sanitize_data(headers) if ErrorHandlingConfig.LOG_HEADERS else {},
                "client_ip": request.client.host if request.client else None,
            }

        if exception:
            log_entry["exception"] = {
                "type": type(exception).__name__,
                "details": str(exception),
            }
            if include_traceback:
                log_entry["exception"]["traceback"] = "".join(
                    traceback.format_exception(type(exception), exception, exception.__traceback__)
                )

        if extra_context:
            log_entry["context"] = ErrorHandlingConfig.sanitize_data(extra_context)

        logger.log(level, json.dumps(log_entry, indent=2, ensure_ascii=False, default=str))
        return trace_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Stamps every request and response with a trace id"""

    async def dispatch(self, request: Request, call_next):
        trace_id = str(uuid.uuid4())[:8]
        token = request_id_var.set(trace_id)
        request.state.trace_id = trace_id
        try:
            response = await call_next(request)
            response.headers["X-Trace-ID"] = trace_id
            return response
        finally:
            request_id_var.reset(token)


def _response(status_code: int, content: Dict[str, Any], trace_id: Optional[str]) -> JSONResponse:
    if ErrorHandlingConfig.INCLUDE_TRACE_ID and trace_id:
        content["trace_id"] = trace_id
    if ErrorHandlingConfig.INCLUDE_TIMESTAMP:
        content["timestamp"] = datetime.utcnow().isoformat()
    return JSONResponse(status_code=status_code, content=content)


async def domain_exception_handler(request: Request, exc: CaseTrackerError) -> JSONResponse:
    """Map domain errors to their HTTP status"""
    trace_id = StructuredLogger.log_error(
        exc.error_type.lower(),
        exc.message,
        request=request,
        exception=exc,
        extra_context=exc.context,
        include_traceback=exc.status_code >= 500,
        level=logging.ERROR if exc.status_code >= 500 else logging.WARNING,
    )
    content = {
        "error": exc.error_type,
        "message": exc.message,
    }
    if exc.context:
        content["details"] = json.loads(json.dumps(exc.context, default=str))
    return _response(exc.status_code, content, trace_id)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    trace_id = None
    if exc.status_code >= 500 or exc.status_code in (401, 403):
        trace_id = StructuredLogger.log_error(
            f"http_{exc.status_code}",
            f"HTTP {exc.status_code}: {exc.detail}",
            request=request,
            exception=exc,
            include_traceback=False,
            level=logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        )
    response = _response(exc.status_code, {"error": f"HTTP {exc.status_code}", "message": exc.detail}, trace_id)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/query validation failures (422)"""
    validation_details = [
        {
            "field": " -> ".join(str(loc) for loc in error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "unknown"),
        }
        for error in exc.errors()
    ]

    trace_id = StructuredLogger.log_error(
        "validation_error_422",
        f"Request validation failed: {len(validation_details)} validation errors",
        request=request,
        extra_context={"validation_errors": validation_details},
        include_traceback=False,
        level=logging.WARNING,
    )
    content = {
        "error": "Validation Error",
        "message": "Request validation failed",
        "detail": validation_details,
        "error_count": len(validation_details),
    }
    return _response(422, content, trace_id)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    trace_id = StructuredLogger.log_error(
        "internal_server_error",
        f"Unhandled exception: {str(exc)}",
        request=request,
        exception=exc,
    )
    # Internal details stay in the log
    return _response(500, {"error": "Internal Server Error", "message": "An unexpected error occurred"}, trace_id)


def setup_error_handling(app):
    """Register middleware and exception handlers on the FastAPI app"""
    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(CaseTrackerError, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Centralized error handling initialized")
