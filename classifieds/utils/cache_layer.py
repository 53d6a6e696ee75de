from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
import time
from typing import Any

import redis

logger = logging.getLogger(__name__)

_LOCK = threading.Lock()

_STATS = {
    "hits": 0,
    "misses": 0,
    "sets": 0,
    "deletes": 0,
    "errors": 0,
}

MAX_KEY_PARAMS_LEN = 420


def _flag(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in ("1", "true", "yes", "on")


def cache_enabled(default: bool = True) -> bool:
    return _flag("ENABLE_CACHE", default)


def _redis_url() -> str:
    return (os.getenv("CACHE_REDIS_URL") or os.getenv("REDIS_URL") or "").strip()


def _socket_timeout() -> float:
    raw = (os.getenv("CACHE_SOCKET_TIMEOUT_MS") or "").strip()
    try:
        ms = int(raw) if raw else 750
    except ValueError:
        ms = 750
    return max(50, min(ms, 10000)) / 1000.0


def _count(stat: str, n: int = 1) -> None:
    with _LOCK:
        _STATS[stat] = int(_STATS.get(stat) or 0) + int(n)


class _MemoryBackend:
    """Process-local stand-in for Redis strings and sets, with expiry."""

    name = "memory"

    def __init__(self):
        self.values: dict[str, tuple[float, str]] = {}
        self.sets: dict[str, tuple[float, set[str]]] = {}

    @staticmethod
    def _live(entry):
        if entry is None or entry[0] <= time.monotonic():
            return None
        return entry[1]

    def get(self, key: str):
        with _LOCK:
            raw = self._live(self.values.get(key))
            if raw is None:
                self.values.pop(key, None)
            return raw

    def setex(self, key: str, ttl: int, raw: str) -> None:
        with _LOCK:
            self.values[key] = (time.monotonic() + ttl, raw)

    def delete(self, *keys: str) -> int:
        removed = 0
        with _LOCK:
            for key in keys:
                removed += int(self.values.pop(key, None) is not None)
                removed += int(self.sets.pop(key, None) is not None)
        return removed

    def add_member(self, tag: str, member: str, ttl: int) -> None:
        with _LOCK:
            members = self._live(self.sets.get(tag)) or set()
            members.add(member)
            expires_at = max(self.sets.get(tag, (0.0,))[0], time.monotonic() + ttl)
            self.sets[tag] = (expires_at, members)

    def members(self, tag: str) -> list[str]:
        with _LOCK:
            members = self._live(self.sets.get(tag))
            if members is None:
                self.sets.pop(tag, None)
                return []
            return sorted(members)

    def clear(self) -> None:
        with _LOCK:
            self.values.clear()
            self.sets.clear()


class _RedisBackend:
    name = "redis"

    def __init__(self, client):
        self.client = client

    def get(self, key: str):
        return self.client.get(key)

    def setex(self, key: str, ttl: int, raw: str) -> None:
        self.client.setex(key, ttl, raw)

    def delete(self, *keys: str) -> int:
        return int(self.client.delete(*keys) or 0)

    def add_member(self, tag: str, member: str, ttl: int) -> None:
        pipe = self.client.pipeline()
        pipe.sadd(tag, member)
        pipe.expire(tag, ttl)
        pipe.execute()

    def members(self, tag: str) -> list[str]:
        return sorted(str(m) for m in (self.client.smembers(tag) or []))


_MEMORY = _MemoryBackend()
_REDIS: _RedisBackend | None = None
_REDIS_RETRY_AT = 0.0


def _reconnect_backoff() -> float:
    raw = (os.getenv("CACHE_RECONNECT_BACKOFF_SECONDS") or "").strip()
    try:
        seconds = float(raw) if raw else 30.0
    except ValueError:
        seconds = 30.0
    return max(0.0, seconds)


def _connect_redis(url: str) -> _RedisBackend | None:
    """Connected backend, or ``None`` while inside the backoff after a failed connect."""
    global _REDIS, _REDIS_RETRY_AT
    with _LOCK:
        if _REDIS is not None:
            return _REDIS
        if time.monotonic() < _REDIS_RETRY_AT:
            return None
        _REDIS_RETRY_AT = time.monotonic() + _reconnect_backoff()
    timeout = _socket_timeout()
    try:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            health_check_interval=30,
        )
        client.ping()
    except redis.RedisError as exc:
        _count("errors")
        logger.warning("cache_redis_unavailable err=%s", exc)
        return None
    with _LOCK:
        _REDIS = _RedisBackend(client)
    return _REDIS


def _backend():
    """Memory when no Redis URL is set; ``None`` when disabled or unreachable."""
    if not cache_enabled():
        return None
    url = _redis_url()
    if not url:
        return _MEMORY
    return _connect_redis(url)


def backend_name() -> str:
    if not cache_enabled():
        return "disabled"
    backend = _backend()
    return backend.name if backend is not None else "unavailable"


def build_cache_key(scope: str, params: dict[str, Any] | None = None) -> str:
    """``scope:k1=v1&k2=v2`` with sorted params; long param strings are hashed."""
    prefix = str(scope or "default").strip().lower().replace(" ", "_")
    pairs = []
    for name, value in sorted((params or {}).items()):
        if value is None:
            text = ""
        elif isinstance(value, (dict, list, tuple)):
            text = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
        else:
            text = str(value)
        pairs.append(f"{name}={text}")
    joined = "&".join(pairs)
    if len(joined) > MAX_KEY_PARAMS_LEN:
        joined = hashlib.sha256(joined.encode("utf-8")).hexdigest()
    return f"{prefix}:{joined}"


def get_json(key: str) -> dict | list | None:
    backend = _backend()
    if backend is None:
        return None
    try:
        raw = backend.get(str(key))
    except redis.RedisError:
        _count("errors")
        return None
    if not raw:
        _count("misses")
        return None
    try:
        value = json.loads(raw)
    except ValueError:
        _count("errors")
        return None
    _count("hits")
    return value


def set_json(key: str, value: Any, ttl_seconds: int) -> bool:
    ttl = int(ttl_seconds or 0)
    backend = _backend()
    if ttl <= 0 or backend is None:
        return False
    try:
        backend.setex(str(key), ttl, json.dumps(value, separators=(",", ":"), default=str))
    except (TypeError, ValueError, redis.RedisError):
        _count("errors")
        return False
    _count("sets")
    return True


def delete(*keys: str) -> int:
    names = [str(k) for k in keys if k]
    backend = _backend()
    if not names or backend is None:
        return 0
    try:
        removed = backend.delete(*names)
    except redis.RedisError:
        _count("errors")
        return 0
    if removed:
        _count("deletes", removed)
    return removed


def add_tag_member(tag: str, key: str, ttl_seconds: int) -> bool:
    """Index ``key`` under ``tag``.

    The tag's expiry is pushed out on every add, so it lives as long as its
    newest member.
    """
    backend = _backend()
    if backend is None:
        return False
    try:
        backend.add_member(str(tag), str(key), max(1, int(ttl_seconds or 1)))
    except redis.RedisError:
        _count("errors")
        return False
    return True


def get_tag_members(tag: str) -> list[str]:
    backend = _backend()
    if backend is None:
        return []
    try:
        return backend.members(str(tag))
    except redis.RedisError:
        _count("errors")
        return []


def cache_stats() -> dict:
    stats = {
        "enabled": cache_enabled(),
        "backend": backend_name(),
        "url_configured": bool(_redis_url()),
    }
    with _LOCK:
        stats.update({name: int(value or 0) for name, value in _STATS.items()})
    return stats


def _reset_cache_state_for_tests() -> None:
    global _REDIS, _REDIS_RETRY_AT
    _MEMORY.clear()
    with _LOCK:
        _REDIS = None
        _REDIS_RETRY_AT = 0.0
        for name in _STATS:
            _STATS[name] = 0
