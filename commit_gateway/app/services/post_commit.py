"""
Per-file bookkeeping after the batch commit succeeded.

The index record is written before a file is listed in the response.
Moderation and the finalization event are scheduled on the request's
background tasks, so they run after the response is sent; their failures
are logged and never reach the caller because the file is already committed.
"""
import logging
from typing import Any, List, Optional, Protocol
from urllib.parse import quote

from commit_gateway.app.core.config import Channel
from commit_gateway.app.schemas.batch_upload import BatchFileResult
from commit_gateway.app.schemas.index_record import IndexRecord
from commit_gateway.app.services.commit_aggregator import CommitResult, FileUpload
from commit_gateway.app.services.moderation_client import ModerationClient
from commit_gateway.app.services.upload_events import UploadEventPublisher
from commit_gateway.app.storage.keys import file_key
from commit_gateway.app.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

CHANNEL_TYPE = "HuggingFace"
DEFAULT_CHANNEL_NAME = "HuggingFace_env"


class TaskScheduler(Protocol):
    def add_task(self, func, *args: Any, **kwargs: Any) -> None: ...


def encode_file_id(full_id: str) -> str:
    return "/".join(quote(segment, safe="!*'()") for segment in full_id.split("/"))


def public_path(full_id: str) -> str:
    return f"/file/{encode_file_id(full_id)}"


class PostCommitRecorder:
    def __init__(
        self,
        store: KeyValueStore,
        scheduler: TaskScheduler,
        moderation: Optional[ModerationClient] = None,
        events: Optional[UploadEventPublisher] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.moderation = moderation
        self.events = events

    def record(
        self,
        channel: Channel,
        result: CommitResult,
        request_host: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> List[BatchFileResult]:
        response_files = []
        for upload in result.files:
            record = self._build_record(channel, upload)
            full_id = upload.file.full_id
            self.store.put(file_key(full_id), "", metadata=record.to_metadata())

            if self.moderation is not None:
                self.scheduler.add_task(
                    self.moderate,
                    full_id,
                    self._moderation_url(channel, record, full_id, request_host),
                    record,
                )
            if self.events is not None:
                self.scheduler.add_task(self.finalize, full_id, result.commit_id, record, request_id)

            response_files.append(BatchFileResult(name=upload.file.name, src=public_path(full_id), fullId=full_id))
        return response_files

    def _build_record(self, channel: Channel, upload: FileUpload) -> IndexRecord:
        return upload.file.record.model_copy(
            update={
                "channel": CHANNEL_TYPE,
                "channel_name": channel.name or DEFAULT_CHANNEL_NAME,
                "hf_repo": channel.repo,
                "hf_file_path": upload.file.file_path,
                "hf_is_private": channel.is_private,
                "hf_file_url": upload.url,
            }
        )

    @staticmethod
    def _moderation_url(channel: Channel, record: IndexRecord, full_id: str, request_host: Optional[str]) -> Optional[str]:
        if not channel.is_private:
            return record.hf_file_url
        if not request_host:
            return None
        # Private repos are not fetchable by the classifier; route through this gateway.
        return f"https://{request_host}{public_path(full_id)}"

    async def moderate(self, full_id: str, url: Optional[str], record: IndexRecord) -> None:
        if not url:
            logger.warning("No moderation URL for %s; leaving label unset", full_id)
            return
        try:
            label = await self.moderation.classify(url)
            updated = record.model_copy(update={"label": label})
            self.store.put(file_key(full_id), "", metadata=updated.to_metadata())
            logger.debug("Moderation label %s for %s", label, full_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Moderation failed for %s: %s", full_id, exc)

    def finalize(self, full_id: str, commit_id: Optional[str], record: IndexRecord, request_id: Optional[str]) -> None:
        try:
            self.events.publish_committed(full_id, commit_id, record.to_metadata(), request_id=request_id)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to publish finalization event for %s", full_id)
