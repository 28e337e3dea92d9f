from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.responses import JSONResponse
from typing import Any
from kitchen_oms.config.sentry import capture_exception, add_breadcrumb
from kitchen_oms.core.exceptions import OMSError
from kitchen_oms.logging.utils import get_app_logger
from kitchen_oms.middlewares.request_context import request_context

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()

logger = get_app_logger("kitchen_oms.handlers")


async def _oms_exception_handler(request: Request, exc: OMSError):
    """Domain errors carry their own code and status."""
    request_context.module_name = 'middleware_handlers'
    if exc.http_status >= 500:
        logger.error(f"domain_error | method={request.method} url={str(request.url)} error={exc.error_code} message={exc.message}", exc_info=True)
        add_breadcrumb(
            message=f"{exc.error_code} on {request.method} {request.url}",
            category="domain",
            level="error",
            data={"error": exc.error_code, "message": exc.message}
        )
        capture_exception(exc)
    else:
        logger.warning(f"domain_error | method={request.method} url={str(request.url)} error={exc.error_code} message={exc.message}")

    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with production-safe messages."""
    request_context.module_name = 'middleware_handlers'

    add_breadcrumb(
        message=f"Validation error on {request.method} {request.url}",
        category="validation",
        level="warning",
        data={"errors": exc.errors()}
    )

    if not configs.DEBUG:
        payload = {"success": False, "error": "VALIDATION_ERROR", "message": "Invalid request data"}
    else:
        # "field_path: error_message", one per error
        error_messages = []
        for err in exc.errors():
            field_path = " -> ".join(str(loc) for loc in err.get("loc", []))
            error_msg = err.get("msg", "Invalid input")
            error_messages.append(f"{field_path}: {error_msg}")

        if len(error_messages) == 1:
            payload = {"success": False, "error": "VALIDATION_ERROR", "message": error_messages[0]}
        else:
            payload = {"success": False, "error": "VALIDATION_ERROR", "message": "Validation errors", "errors": error_messages}

    logger.warning(f"validation_error | method={request.method} url={str(request.url)} errors={exc.errors()}")
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=payload)


async def _general_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with production-safe messages."""
    request_context.module_name = 'middleware_handlers'
    logger.error(
        f"unhandled_exception | method={request.method} url={str(request.url)} exception_type={type(exc).__name__} exception_message={str(exc)}",
        exc_info=True,
    )

    add_breadcrumb(
        message=f"Unhandled exception on {request.method} {request.url}",
        category="exception",
        level="error",
        data={"exception_type": type(exc).__name__, "exception_message": str(exc)}
    )
    capture_exception(exc)

    if not configs.DEBUG:
        payload = {"success": False, "error": "INTERNAL_ERROR", "message": "Something went wrong"}
    else:
        payload = {"success": False, "error": "INTERNAL_ERROR", "message": f"Internal server error: {str(exc)}"}

    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)


async def _http_exception_handler(request: Request, exc: Any):
    """Handle HTTP exceptions with production-safe messages."""
    request_context.module_name = 'middleware_handlers'
    status_code = getattr(exc, 'status_code', status.HTTP_500_INTERNAL_SERVER_ERROR)
    # 5xx as errors with traceback, 4xx as warnings
    if status_code >= 500:
        logger.error(f"http_exception | method={request.method} url={str(request.url)} status_code={status_code} detail={getattr(exc, 'detail', str(exc))}", exc_info=True)
        add_breadcrumb(
            message=f"HTTP {status_code} error on {request.method} {request.url}",
            category="http",
            level="error",
            data={"status_code": status_code, "detail": getattr(exc, 'detail', str(exc))}
        )
        capture_exception(exc)
    else:
        logger.warning(f"http_exception | method={request.method} url={str(request.url)} status_code={status_code} detail={getattr(exc, 'detail', str(exc))}")

    if not configs.DEBUG:
        if status_code == 404:
            message = "Resource not found"
        elif status_code == 403:
            message = "Access denied"
        elif status_code == 401:
            message = "Authentication required"
        elif 400 <= status_code < 500:
            message = "Invalid request"
        else:
            message = "Something went wrong"
    else:
        message = getattr(exc, 'detail', str(exc))

    return JSONResponse(status_code=status_code, content={"success": False, "error": "HTTP_ERROR", "message": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the given FastAPI instance."""
    app.add_exception_handler(OMSError, _oms_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _general_exception_handler)
