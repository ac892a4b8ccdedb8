# backend/lnedu/core/cache.py
"""
Cache de leitura em Redis. Sem REDIS_URL o cache fica desligado e todas as
funções viram no-op; erro de conexão só gera warning.
"""
from __future__ import annotations

import json
from typing import Any

import redis

from lnedu.core.config import settings
from lnedu.core.logger import get_logger

log = get_logger("cache")

_client: redis.Redis | None = None


def get_redis() -> redis.Redis | None:
    global _client
    if not settings.REDIS_URL:
        return None
    if _client is None:
        _client = redis.Redis.from_url(
            settings.REDIS_URL,
            socket_connect_timeout=5,
            socket_timeout=5,
            decode_responses=True,
        )
    return _client


def get_cache(key: str) -> Any | None:
    client = get_redis()
    if client is None:
        return None
    try:
        raw = client.get(key)
    except redis.RedisError as e:
        log.warning(f"redis get falhou ({key}): {e}")
        return None
    return json.loads(raw) if raw else None


def set_cache(key: str, value: Any, ttl_seconds: int | None = None) -> None:
    client = get_redis()
    if client is None:
        return
    try:
        client.setex(key, ttl_seconds or settings.CACHE_TTL_SECONDS, json.dumps(value, default=str))
    except redis.RedisError as e:
        log.warning(f"redis set falhou ({key}): {e}")


def delete_cache(*keys: str) -> None:
    client = get_redis()
    if client is None or not keys:
        return
    try:
        client.delete(*keys)
    except redis.RedisError as e:
        log.warning(f"redis delete falhou ({keys}): {e}")


def delete_cache_pattern(pattern: str) -> None:
    client = get_redis()
    if client is None:
        return
    try:
        keys = list(client.scan_iter(match=pattern))
        if keys:
            client.delete(*keys)
    except redis.RedisError as e:
        log.warning(f"redis delete por padrão falhou ({pattern}): {e}")
