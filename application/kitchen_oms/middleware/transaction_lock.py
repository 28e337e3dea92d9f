"""
Transaction lock middleware for checkout.

Hashes the checkout payload and claims it in Redis with a TTL so a
double-submitted cart does not create two orders. Returns 409 when the same
payload arrives inside the lock window. Fails open when Redis is unreachable.
"""

import hashlib
import json
from typing import Callable

import redis
from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from kitchen_oms.connections.redis_wrapper import RedisJSONWrapper, safe_key
from kitchen_oms.config.settings import OMSConfigs
from kitchen_oms.logging.utils import get_app_logger

logger = get_app_logger("kitchen_oms.transaction_lock_middleware")
configs = OMSConfigs()


class TransactionLockMiddleware(BaseHTTPMiddleware):

    def __init__(self, app, redis_factory: Callable[[], RedisJSONWrapper] | None = None):
        super().__init__(app)
        self.lock_ttl = configs.CHECKOUT_LOCK_TTL_SECONDS
        self.enabled = configs.CHECKOUT_LOCK_ENABLED
        self.redis_factory = redis_factory or (lambda: RedisJSONWrapper(database=configs.REDIS_CACHE_DB))

        self.protected_endpoints = [
            "/app/v1/checkout",
        ]

    def should_apply_lock(self, request: Request) -> bool:
        if not self.enabled or request.method != "POST":
            return False
        return any(request.url.path.endswith(endpoint) for endpoint in self.protected_endpoints)

    def generate_payload_hash(self, body: bytes) -> str:
        """SHA256 of the payload with keys sorted so field order does not matter"""
        try:
            payload = json.loads(body.decode('utf-8'))
            normalized_payload = json.dumps(payload, sort_keys=True)
            return hashlib.sha256(normalized_payload.encode('utf-8')).hexdigest()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"checkout_payload_unparsable | error={e}")
            return hashlib.sha256(body).hexdigest()

    def try_acquire_lock(self, lock_key: str, payload_hash: str, request: Request) -> bool:
        """
        Atomically claim the lock key with SETNX.

        Returns:
            True if the request may proceed, False for a duplicate
        """
        redis_client = self.redis_factory()
        if not redis_client.connected:
            logger.error("checkout_lock_redis_unavailable | allowing request (fail-open)")
            return True

        lock_data = {
            "payload_hash": payload_hash,
            "endpoint": request.url.path,
            "client_ip": request.client.host if request.client else "",
        }
        try:
            acquired = redis_client.set_if_not_exists_with_ttl(lock_key, lock_data, self.lock_ttl)
        except redis.exceptions.RedisError as e:
            logger.error(f"checkout_lock_redis_error | key={lock_key} error={e} | allowing request (fail-open)")
            return True

        if acquired:
            logger.info(f"checkout_lock_acquired | key={lock_key} ttl={self.lock_ttl}s")
        else:
            logger.warning(f"checkout_lock_exists | key={lock_key}")
        return acquired

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.should_apply_lock(request):
            return await call_next(request)

        body = await request.body()
        payload_hash = self.generate_payload_hash(body)
        lock_key = safe_key("checkout_lock", payload_hash)

        if not self.try_acquire_lock(lock_key, payload_hash, request):
            logger.warning(f"duplicate_checkout_detected | endpoint={request.url.path} hash={payload_hash[:16]}")
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content={
                    "success": False,
                    "error": "DUPLICATE_REQUEST",
                    "message": f"Duplicate checkout request detected. Please wait {self.lock_ttl} seconds before retrying.",
                    "retry_after_seconds": self.lock_ttl
                }
            )

        # Restore body for downstream processing
        async def receive():
            return {"type": "http.request", "body": body}

        request._receive = receive
        return await call_next(request)
