# app/common/redis_client.py
import redis
from django.conf import settings


_pool = None


def get_redis():
    """
    세션 상태 캐시용 Redis 클라이언트.
    REDIS_HOST 가 비어 있으면 None (캐시 없이 DB 만 사용).
    """
    global _pool
    if not settings.REDIS_HOST:
        return None
    if _pool is None:
        _pool = redis.ConnectionPool(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            decode_responses=True,
            # 캐시가 느리면 기다리지 말고 DB 로
            socket_timeout=1,
            socket_connect_timeout=1,
            health_check_interval=30,
        )
    return redis.Redis(connection_pool=_pool)


def reset_redis():
    global _pool
    if _pool is not None:
        _pool.disconnect()
    _pool = None
