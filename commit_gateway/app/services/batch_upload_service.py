"""
End-to-end handling of one batch upload request.

Control flow: validate and budget every entry (no I/O), replay a stored
response for a known request id, resolve the channel, write all files in one
backend commit, record per-file index entries, store the response for
replay. Backend failures are classified here, once.
"""
import logging
import time
from typing import Any, Callable, Dict, Optional, Sequence

from commit_gateway.app.core.config import Channel, Settings
from commit_gateway.app.core.errors import (
    AuthError,
    GatewayError,
    InternalError,
    PartialUploadError,
    RateLimitError,
)
from commit_gateway.app.schemas.batch_upload import BatchUploadRequest, BatchUploadResponse
from commit_gateway.app.services import normalizer
from commit_gateway.app.services.batch_budget import BatchLimits, prepare_batch
from commit_gateway.app.services.channel_selector import ChannelSelectionStrategy, select_channel
from commit_gateway.app.services.commit_aggregator import (
    BatchCommitError,
    UploadStage,
    commit_batch,
    default_commit_message,
)
from commit_gateway.app.services.hf_backend import CommitBackend, error_retry_after, error_status
from commit_gateway.app.services.idempotency import IdempotencyLedger
from commit_gateway.app.services.post_commit import PostCommitRecorder

logger = logging.getLogger(__name__)

BackendFactory = Callable[[Channel], CommitBackend]


def classify_backend_error(exc: BatchCommitError) -> GatewayError:
    cause = exc.cause
    if isinstance(cause, GatewayError):
        return cause

    message = str(exc)
    status = error_status(cause)
    retry_after = error_retry_after(cause)

    if status == 429:
        return RateLimitError(message, retry_after_seconds=retry_after)
    if status in (401, 403):
        return AuthError(message)
    if exc.stage == UploadStage.COMMIT and exc.staged_files:
        uploaded = [{"name": u.file.name, "filePath": u.file.file_path} for u in exc.staged_files]
        return PartialUploadError(message, uploaded, retry_after_seconds=retry_after)
    return InternalError(message)


class BatchUploadService:
    def __init__(
        self,
        settings: Settings,
        channels: Sequence[Channel],
        strategy: ChannelSelectionStrategy,
        ledger: IdempotencyLedger,
        backend_factory: BackendFactory,
        recorder: PostCommitRecorder,
    ):
        self.settings = settings
        self.channels = channels
        self.strategy = strategy
        self.ledger = ledger
        self.backend_factory = backend_factory
        self.recorder = recorder

    async def upload(
        self,
        request: BatchUploadRequest,
        upload_ip: Optional[str] = None,
        request_host: Optional[str] = None,
    ) -> Dict[str, Any]:
        folder = normalizer.normalize_upload_folder(request.upload_folder)
        prepared = prepare_batch(
            request.files,
            folder,
            BatchLimits.from_settings(self.settings),
            upload_ip=upload_ip,
            timestamp_ms=int(time.time() * 1000),
        )

        replay = self.ledger.lookup(request.request_id)
        if replay is not None:
            return replay

        channel = select_channel(self.channels, self.strategy, request.channel_name)
        backend = self.backend_factory(channel)
        summary = (request.commit_message or "").strip() or default_commit_message(len(prepared))

        log_extra = {"request_id": request.request_id, "channel": channel.name, "files": len(prepared)}
        logger.info("Committing batch", extra=log_extra)
        try:
            result = await commit_batch(
                backend,
                prepared,
                summary,
                staging_concurrency=self.settings.hf_staging_concurrency,
            )
        except BatchCommitError as exc:
            error = classify_backend_error(exc)
            logger.warning(
                "Batch commit failed at %s stage: %s (%s)",
                exc.stage.value,
                exc,
                error.code,
                extra=log_extra,
            )
            raise error from exc

        files = self.recorder.record(channel, result, request_host=request_host, request_id=request.request_id)
        response = BatchUploadResponse(
            requestId=request.request_id,
            commitId=result.commit_id,
            channelName=channel.name,
            repo=channel.repo,
            files=files,
        ).to_payload()

        try:
            self.ledger.store_response(request.request_id, response)
        except Exception:  # noqa: BLE001
            # Files are already committed; only replay for this request id is lost.
            logger.exception("Failed to store batch response for replay", extra=log_extra)
        logger.info("Batch committed", extra={**log_extra, "commit_id": result.commit_id})
        return response
