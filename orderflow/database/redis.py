"""
Lightweight in-memory RedisCache replacement for local development.

Holds step drafts: the raw input of a step submission that failed
validation, so the frontend can restore what the user typed. Implements the
same interface as `orderflow.database.redis_real`.
"""

from __future__ import annotations

import copy
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple


class RedisCache:
    def __init__(self, default_ttl: int = 604800) -> None:
        # order_id -> (expires_at, draft)
        self._drafts: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._default_ttl = default_ttl

    # --- Draft helpers used by OrderOrchestrator ----------------------------

    def set_draft(self, order_id: str, step_id: str, data: Dict[str, Any], ttl: Optional[int] = None) -> None:
        draft = {
            "order_id": order_id,
            "step": step_id,
            "data": copy.deepcopy(data),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        self._drafts[order_id] = (time.monotonic() + (ttl or self._default_ttl), draft)

    def get_draft(self, order_id: str) -> Optional[Dict[str, Any]]:
        entry = self._drafts.get(order_id)
        if entry is None:
            return None
        expires_at, draft = entry
        if time.monotonic() >= expires_at:
            self._drafts.pop(order_id, None)
            return None
        return copy.deepcopy(draft)

    def delete_draft(self, order_id: str) -> None:
        self._drafts.pop(order_id, None)

    # --- Misc -----------------------------------------------------------------

    def ping(self) -> bool:
        """
        Health check calls this; always True so the API reports the cache
        as "connected" in local/dev mode.
        """
        return True
