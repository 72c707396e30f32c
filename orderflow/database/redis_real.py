"""
Real Redis-backed draft cache for production when REDIS_URL is set.
Implements the same interface as orderflow.database.redis (in-memory stub).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis

logger = logging.getLogger(__name__)


class RedisCache:
    """
    Redis-backed step draft cache. Use when REDIS_URL is set in production.
    """

    def __init__(self, url: str, default_ttl: int = 604800) -> None:
        self._client = redis.from_url(url, decode_responses=True)
        self._default_ttl = default_ttl

    def _draft_key(self, order_id: str) -> str:
        return f"order_draft:{order_id}"

    def set_draft(self, order_id: str, step_id: str, data: Dict[str, Any], ttl: Optional[int] = None) -> None:
        payload = json.dumps(
            {
                "order_id": order_id,
                "step": step_id,
                "data": data,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            default=str,
        )
        self._client.setex(self._draft_key(order_id), ttl or self._default_ttl, payload)

    def get_draft(self, order_id: str) -> Optional[Dict[str, Any]]:
        raw = self._client.get(self._draft_key(order_id))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("[Drafts] discarding unreadable draft for order_id=%s", order_id)
            return None

    def delete_draft(self, order_id: str) -> None:
        self._client.delete(self._draft_key(order_id))

    def ping(self) -> bool:
        try:
            return self._client.ping()
        except redis.RedisError:
            return False
