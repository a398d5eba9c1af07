from redis import asyncio as aioredis
from .config import Settings


def build_redis(settings: Settings) -> aioredis.Redis | None:
    if not settings.REDIS_URL:
        return None
    return aioredis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)


async def redis_health(redis: aioredis.Redis | None) -> bool | None:
    if redis is None:
        return None  # not configured
    try:
        pong = await redis.ping()
        return bool(pong)
    except Exception:
        return False
