"""Fixed-window rate limiting keyed by client IP, backed by Redis.

Counters live in Redis so every service instance shares them. When Redis is
unavailable the limiter lets requests through and logs the failure.
"""
import logging
import time

from fastapi import Request
from redis.exceptions import RedisError

from filebox.core.config import settings
from filebox.core.redis import RedisClient, redis_client
from filebox.utils.exceptions import RateLimitError

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    """Rate-limit key; X-Forwarded-For counts only when a trusted proxy sets it"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and settings.TRUST_PROXY_HEADERS:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


class RateLimiter:
    """FastAPI dependency enforcing ``limit`` requests per ``window`` seconds"""

    def __init__(self, scope: str, limit: int, window: int = 60, client: RedisClient = None):
        self.scope = scope
        self.limit = limit
        self.window = window
        self.client = client or redis_client

    def _make_key(self, ip: str, now: float) -> str:
        window_start = int(now // self.window) * self.window
        return f"ratelimit:{self.scope}:{ip}:{window_start}"

    async def hit(self, ip: str, now: float = None) -> None:
        """Count one request for ``ip``; raise RateLimitError when over the limit"""
        if self.limit <= 0:
            return
        now = time.time() if now is None else now
        key = self._make_key(ip, now)
        try:
            count = await self.client.incr_with_expiry(key, self.window)
        except RedisError as e:
            logger.error(f"Redis error in rate limiter ({self.scope}): {e}")
            return
        if count is None:
            return
        if count > self.limit:
            retry_after = self.window - int(now % self.window)
            logger.warning(f"Rate limit exceeded: scope={self.scope} ip={ip} count={count}")
            raise RateLimitError(retry_after=retry_after)

    async def __call__(self, request: Request) -> None:
        await self.hit(client_ip(request))


share_rate_limit = RateLimiter("share", settings.SHARE_RATE_LIMIT_PER_MINUTE)
auth_rate_limit = RateLimiter("auth", settings.AUTH_RATE_LIMIT_PER_MINUTE)
upload_rate_limit = RateLimiter("upload", settings.UPLOAD_RATE_LIMIT_PER_MINUTE)
