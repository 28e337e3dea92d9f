import json
from urllib.parse import quote_plus

import redis

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.redis_wrapper")

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()

REDIS_URL = configs.REDIS_URL


def safe_key(*parts) -> str:
    """Join URL-encoded key segments with ':'"""
    return ":".join(quote_plus(str(part), safe='') for part in parts)


class RedisJSONWrapper:
    def __init__(self, redis_uri=REDIS_URL, database=None):
        if database is not None:
            redis_uri = f"{redis_uri}/{database}"
        try:
            self.redis_client = redis.from_url(redis_uri)
            self.redis_client.ping()
            self.connected = True
        except redis.exceptions.RedisError as e:
            logger.error(f"redis_connect_failed | uri={redis_uri} error={e}")
            self.redis_client = None
            self.connected = False

    def set_if_not_exists_with_ttl(self, key, data, ttl_seconds: int) -> bool:
        """
        Atomically set a key with TTL only if it doesn't exist (SETNX behavior).

        Returns:
            True if key was set (didn't exist before)
            False if key already exists
        """
        value = json.dumps(data)
        result = self.redis_client.set(key, value, nx=True, ex=ttl_seconds)
        return bool(result)
