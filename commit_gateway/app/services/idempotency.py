"""
Replay of completed batches keyed by the caller's request identifier.

Only successful responses are stored. The lookup-then-store pattern is a
best-effort guard: two concurrent first submissions of the same identifier
can both reach the backend.
"""
import json
import logging
from typing import Any, Dict, Optional

from commit_gateway.app.storage.keys import idempotency_key
from commit_gateway.app.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class IdempotencyLedger:
    def __init__(self, store: KeyValueStore):
        self.store = store

    def lookup(self, request_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """Return the stored response flagged as a replay, or None on a miss."""
        if not request_id:
            return None
        key = idempotency_key(request_id)
        existing = self.store.get(key)
        if not existing:
            return None

        try:
            payload = json.loads(existing)
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            logger.warning("Removing corrupt idempotency entry", extra={"request_id": request_id})
            self.store.delete(key)
            return None

        payload["idempotent"] = True
        logger.info("Replaying batch response", extra={"request_id": request_id})
        return payload

    def store_response(self, request_id: Optional[str], response: Dict[str, Any]) -> None:
        if not request_id:
            return
        self.store.put(idempotency_key(request_id), json.dumps(response))
