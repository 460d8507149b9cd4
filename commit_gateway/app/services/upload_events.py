"""
Publishes an event per committed file for downstream bookkeeping
(analytics, cache purges). Events are JSON envelopes pushed onto a Redis
list that consumers drain with BRPOP.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from redis import Redis

logger = logging.getLogger(__name__)

EVENT_UPLOAD_COMMITTED = "upload.committed"


def create_envelope(event_type: str, payload: Dict[str, Any], request_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "schema_version": 1,
        "event_id": str(uuid4()),
        "event_type": event_type,
        "source": "commit-gateway",
        "created_at": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
        "trace": {"request_id": request_id},
    }


class UploadEventPublisher:
    def __init__(self, connection: Redis, queue_name: str):
        self.connection = connection
        self.queue_name = queue_name

    def publish_committed(
        self,
        full_id: str,
        commit_id: Optional[str],
        metadata: Dict[str, Any],
        request_id: Optional[str] = None,
    ) -> None:
        envelope = create_envelope(
            EVENT_UPLOAD_COMMITTED,
            {"full_id": full_id, "commit_id": commit_id, "metadata": metadata},
            request_id=request_id,
        )
        self.connection.lpush(self.queue_name, json.dumps(envelope))
        logger.debug("Published %s for %s to %s", EVENT_UPLOAD_COMMITTED, full_id, self.queue_name)
