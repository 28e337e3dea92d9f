"""
Audit and request logging middleware
"""
import json
import socket
import time
from datetime import datetime

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from kitchen_oms.logging.utils import get_app_logger, get_audit_logger
from kitchen_oms.logging.config import LoggingConfig
from kitchen_oms.middlewares.request_context import (
    RequestContext,
    clear_request_context,
    create_request_id,
    request_context,
    set_request_context,
)

# settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()

MASKED_HEADERS = {'authorization', 'x-admin-token', 'x-razorpay-signature', 'cookie'}


class AuditMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, exclude_paths: list[str] | None = None):
        super().__init__(app)
        self.logger = get_app_logger('kitchen_oms.audit_middleware')
        self.exclude_audit_paths = exclude_paths or ['/health', '/docs', '/redoc', '/openapi.json']
        self.hostname = socket.gethostname()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        set_request_context(RequestContext())
        request_id = create_request_id()
        start_time = time.time()
        timestamp = datetime.now().isoformat()
        body_bytes = await request.body()

        request_context.request_method = request.method
        request_context.request_path = request.url.path

        should_audit = LoggingConfig.AUDIT_LOGGING_ENABLED and not any(
            request.url.path.startswith(p) for p in self.exclude_audit_paths
        )

        try:
            response = await call_next(request)
            duration = (time.time() - start_time) * 1000
            response.headers['X-Request-ID'] = request_id
            if should_audit:
                audit_data = self._build_audit_data(request, response.status_code, body_bytes, duration, timestamp)
                get_audit_logger().info("Audit log", extra=audit_data)
            return response
        except Exception as exc:
            duration = (time.time() - start_time) * 1000
            self.logger.error(
                f"request_failed | method={request.method} path={request.url.path} "
                f"exception={exc.__class__.__name__} duration_ms={duration:.0f}",
                exc_info=True,
            )
            if should_audit:
                audit_data = self._build_audit_data(request, 500, body_bytes, duration, timestamp)
                audit_data['exception'] = exc.__class__.__name__
                get_audit_logger().info("Audit log (exception)", extra=audit_data)
            raise
        finally:
            clear_request_context()

    def _mask_headers(self, headers) -> dict:
        return {k: ('****' if k.lower() in MASKED_HEADERS else v) for k, v in headers.items()}

    def _parse_body(self, request: Request, body_bytes: bytes):
        if not body_bytes:
            return {}
        text = body_bytes.decode('utf-8', errors='replace')
        if 'application/json' in request.headers.get('content-type', ''):
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                return text[:1000]
        return text[:1000]

    def _build_audit_data(self, request: Request, status_code: int, body_bytes: bytes, duration: float, timestamp: str) -> dict:
        return {
            'duration': round(duration, 2),
            'hostname': self.hostname,
            'module_name': request_context.module_name,
            'request': {
                "GET": dict(request.query_params),
                "BODY": self._parse_body(request, body_bytes),
                "HEADERS": self._mask_headers(dict(request.headers)),
            },
            'request_method': request.method,
            'request_path': request.url.path,
            'status_code': status_code,
            'timestamp': timestamp,
        }
