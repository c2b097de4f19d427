"""
Redis-backed client storage for carts and other per-session state.

Every operation degrades instead of raising: when Redis is disabled or
unreachable, reads return None and writes return False so callers can keep
working from memory.
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

logger = logging.getLogger(__name__)

DECIMAL_MARKER = '__decimal__'


def _encode_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # Kept as a string so cents survive the round trip
        return {DECIMAL_MARKER: str(obj)}
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Cannot store value of type {type(obj).__name__}")


def _decode_object(obj: dict) -> Any:
    if len(obj) == 1 and DECIMAL_MARKER in obj:
        return Decimal(obj[DECIMAL_MARKER])
    return obj


def dumps(value: Any) -> str:
    return json.dumps(value, default=_encode_default)


def loads(raw: str) -> Any:
    return json.loads(raw, object_hook=_decode_object)


class ClientStorage:
    """
    Namespaced JSON values in Redis.

    Keys look like {prefix}:{namespace}:{key}, e.g. storefront:cart:<id>:items.
    """

    def __init__(self, app: Optional[Flask] = None, client=None, prefix: str = 'storefront'):
        self.client = client
        self.prefix = prefix
        self.enabled = client is not None

        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Connect using REDIS_URL unless CLIENT_STORAGE_ENABLED is off."""
        self.prefix = app.config.get('CLIENT_STORAGE_PREFIX', self.prefix)
        self.enabled = app.config.get('CLIENT_STORAGE_ENABLED', True)
        if not self.enabled:
            logger.info("[STORAGE] Client storage disabled by config; carts stay in memory")
            return

        url = app.config.get('REDIS_URL', 'redis://localhost:6379/0')
        try:
            client = redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            client.ping()
        except RedisError as e:
            logger.warning(f"[STORAGE] Redis unreachable at {url} ({e}); carts stay in memory")
            self.attach(None)
            return

        self.attach(client)
        logger.info(f"[STORAGE] Connected to Redis at {url}")

    def attach(self, client) -> None:
        """Swap the underlying Redis client (None disables storage)."""
        self.client = client
        self.enabled = client is not None

    def is_available(self) -> bool:
        if not self.enabled or self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False

    def build_key(self, namespace: str, key: str) -> str:
        return f"{self.prefix}:{namespace}:{key}"

    def get_json(self, namespace: str, key: str) -> Optional[Any]:
        """Stored value, or None when missing, unreadable or unavailable."""
        if not self.is_available():
            return None
        full_key = self.build_key(namespace, key)
        try:
            raw = self.client.get(full_key)
            return None if raw is None else loads(raw)
        except (RedisError, ValueError) as e:
            logger.warning(f"[STORAGE] Could not read {full_key}: {e}")
            return None

    def set_json(self, namespace: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store a value (with expiry when ttl is set); False if it was not persisted."""
        if not self.is_available():
            return False
        full_key = self.build_key(namespace, key)
        try:
            payload = dumps(value)
            if ttl:
                self.client.setex(full_key, ttl, payload)
            else:
                self.client.set(full_key, payload)
        except (RedisError, TypeError) as e:
            logger.warning(f"[STORAGE] Could not write {full_key}: {e}")
            return False
        return True

    def remove(self, namespace: str, key: str) -> bool:
        if not self.is_available():
            return False
        full_key = self.build_key(namespace, key)
        try:
            self.client.delete(full_key)
        except RedisError as e:
            logger.warning(f"[STORAGE] Could not delete {full_key}: {e}")
            return False
        return True


_client_storage: Optional[ClientStorage] = None


def init_client_storage(app: Flask) -> ClientStorage:
    """Create the app's client storage and register it under app.extensions."""
    global _client_storage
    _client_storage = ClientStorage(app)
    app.extensions['client_storage'] = _client_storage
    return _client_storage


def get_client_storage() -> ClientStorage:
    if _client_storage is None:
        raise RuntimeError("Client storage not initialized.")
    return _client_storage
