# cartstore/data/redis_client.py
import redis

from cartstore.utils.settings import REDIS_URL, REDIS_SOCKET_TIMEOUT

_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    """
    Jeden klient na proces, tworzony przy starcie serwisu
    i wspoldzielony przez wszystkie zapytania (redis-py ma wlasny connection pool).
    """
    global _client
    if _client is None:
        _client = redis.Redis.from_url(
            REDIS_URL,
            decode_responses=True,
            socket_timeout=REDIS_SOCKET_TIMEOUT,
        )
    return _client
