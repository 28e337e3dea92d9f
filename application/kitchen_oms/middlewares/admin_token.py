import hmac

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from kitchen_oms.logging.utils import get_app_logger
from kitchen_oms.middlewares.request_context import request_context

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()

logger = get_app_logger("kitchen_oms.admin_token")


class AdminTokenMiddleware(BaseHTTPMiddleware):
    """Gates /admin routes behind a static bearer token. Disabled when no token is configured."""

    include_path_start = "/admin/"

    def __init__(self, app, token: str | None = None):
        super().__init__(app)
        self.token = configs.ADMIN_API_TOKEN if token is None else token

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or not self.token:
            return await call_next(request)

        if not request.url.path.startswith(self.include_path_start):
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        token = auth_header.split(" ", 1)[1] if auth_header.startswith("Bearer ") else auth_header

        if not token:
            logger.warning("admin_token_missing")
            return JSONResponse(status_code=401, content={"success": False, "error": "UNAUTHORIZED", "message": "Token is required"})

        if not hmac.compare_digest(token.encode(), self.token.encode()):
            logger.warning(f"admin_token_invalid | path={request.url.path}")
            return JSONResponse(status_code=401, content={"success": False, "error": "UNAUTHORIZED", "message": "Invalid token"})

        request_context.user_id = "admin"
        return await call_next(request)
