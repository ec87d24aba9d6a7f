"""Redis cache for oracle results (grammar verdicts and improvements).

Only deterministic, successful oracle answers are cached. Session state is never
cached: the ledger is re-read on every step.
"""
import hashlib
import json
import logging
from typing import Optional
import redis
from app.core.config import settings

logger = logging.getLogger(__name__)

_client = None
_checked = False


def _get_client():
    """Connect lazily on first use; a failed ping disables the cache for this process."""
    global _client, _checked
    if _checked:
        return _client
    _checked = True
    if not settings.cache_enabled:
        return None
    try:
        client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_timeout=settings.cache_socket_timeout,
            socket_connect_timeout=settings.cache_socket_timeout,
        )
        client.ping()
        _client = client
        logger.info("Oracle cache connected (%s)", settings.redis_url)
    except Exception as e:
        logger.warning(f"Redis not available: {e}. Continuing without cache.")
        _client = None
    return _client


def is_available() -> bool:
    return _get_client() is not None


def cache_key(kind: str, text: str) -> str:
    """Namespaced key, e.g. oracle:grammar:<md5 of model + text>."""
    digest = hashlib.md5(f"{settings.llm_model}\n{text}".encode()).hexdigest()
    return f"oracle:{kind}:{digest}"


def get_json(key: str) -> Optional[dict]:
    """Cached JSON object, or None on miss, decode error or Redis failure."""
    client = _get_client()
    if client is None:
        return None
    try:
        raw = client.get(key)
    except Exception as e:
        logger.error(f"Cache get error: {e}")
        return None
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except ValueError:
        logger.warning("Discarding undecodable cache entry %s", key)
        return None
    return value if isinstance(value, dict) else None


def set_json(key: str, value: dict, ttl: Optional[int] = None) -> None:
    client = _get_client()
    if client is None:
        return
    try:
        client.setex(key, ttl or settings.oracle_cache_ttl, json.dumps(value))
    except Exception as e:
        logger.error(f"Cache set error: {e}")
