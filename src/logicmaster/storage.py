from redis.asyncio import Redis

from .config import settings


def get_redis(url: str = settings.REDIS_URL) -> Redis:
    return Redis.from_url(url, decode_responses=True)
