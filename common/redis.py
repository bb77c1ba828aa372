from functools import cache

from django.conf import settings

from redis import Redis


@cache
def get_redis_connection() -> Redis:
    """
    Process-wide Redis client. ``Redis.from_url`` connects lazily, building the client here
    keeps module imports free of network access.
    """
    return Redis.from_url(settings.REDIS_URL)
