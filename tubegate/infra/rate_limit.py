import functools
import logging

from fastapi import HTTPException, Request
from redis.exceptions import RedisError

from tubegate.infra.redis import get_redis
from tubegate.utils.locale import get_locale
from tubegate.i18n import i18n

logger = logging.getLogger(__name__)


class RedisRateLimiter:
    """Fixed-window per-client limiter; open when Redis is unavailable"""

    lua_script = """
    local key = KEYS[1]
    local limit = tonumber(ARGV[1])
    local window = tonumber(ARGV[2])

    local current = redis.call('INCR', key)
    if current == 1 then
        redis.call('EXPIRE', key, window)
    end

    if current > limit then
        local ttl = redis.call('TTL', key)
        return {0, ttl}
    end

    return {1, 0}
    """

    async def __call__(self, request: Request):
        rate_config = request.app.state.config.rate_limit
        if not rate_config.enabled:
            return True

        redis = get_redis()
        if not redis:
            return True

        client_ip = request.client.host if request.client else "unknown"
        key = f"rate:{client_ip}:{request.url.path}"

        try:
            allowed, ttl = await redis.eval(
                self.lua_script,
                1,
                key,
                rate_config.max_requests,
                rate_config.window_seconds
            )
        except RedisError as e:
            logger.warning("Rate limiter unavailable: %s", e)
            return True

        if not allowed:
            locale = get_locale(request.headers.get("accept-language"))
            _ = functools.partial(i18n.get, locale=locale)
            raise HTTPException(
                status_code=429,
                detail=_("error.rate_limit", seconds=ttl),
                headers={"Retry-After": str(ttl)}
            )

        return True


rate_limiter = RedisRateLimiter()
