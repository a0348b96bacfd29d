import json
import redis
import structlog
from typing import Optional, Any
from ..config import settings

logger = structlog.get_logger()

_redis_client: Optional[redis.Redis] = None

CATALOG_PATTERN = "courses:*"


def catalog_list_key(limit: int, offset: int) -> str:
    return f"courses:list:{limit}:{offset}"


def catalog_course_key(slug: str) -> str:
    return f"courses:slug:{slug}"


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True
        )
    return _redis_client

def get_cache(key: str) -> Optional[Any]:
    """Получить значение из кэша"""
    if not settings.CACHE_ENABLED:
        return None
    try:
        client = get_redis()
        value = client.get(key)
        if value:
            return json.loads(value)
    except redis.RedisError as e:
        # Если Redis недоступен, работаем без кэша
        logger.warning("cache_unavailable", op="get", key=key, error=str(e))
    return None

def set_cache(key: str, value: Any, ttl: int | None = None) -> bool:
    """Сохранить значение в кэш"""
    if not settings.CACHE_ENABLED:
        return False
    try:
        client = get_redis()
        ttl = ttl or settings.CACHE_TTL
        client.setex(key, ttl, json.dumps(value, ensure_ascii=False, default=str))
        return True
    except redis.RedisError as e:
        logger.warning("cache_unavailable", op="set", key=key, error=str(e))
        return False

def delete_cache_pattern(pattern: str) -> int:
    """Удалить все ключи по паттерну"""
    if not settings.CACHE_ENABLED:
        return 0
    try:
        client = get_redis()
        keys = client.keys(pattern)
        if keys:
            return client.delete(*keys)
        return 0
    except redis.RedisError as e:
        logger.warning("cache_unavailable", op="delete", pattern=pattern, error=str(e))
        return 0

def invalidate_catalog() -> int:
    # любая правка курса/структуры меняет публичный каталог
    return delete_cache_pattern(CATALOG_PATTERN)
