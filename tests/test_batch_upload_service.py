import pytest
from fastapi import BackgroundTasks

from commit_gateway.app.schemas.batch_upload import BatchUploadRequest
from commit_gateway.app.services.batch_upload_service import BatchUploadService
from commit_gateway.app.services.channel_selector import FirstChannelStrategy
from commit_gateway.app.services.idempotency import IdempotencyLedger
from commit_gateway.app.services.post_commit import PostCommitRecorder
from commit_gateway.app.storage.keys import file_key
from conftest import FakeBackend, file_entry


class BrokenLedger(IdempotencyLedger):
    def store_response(self, request_id, response):
        raise ConnectionError("ledger unavailable")


def make_service(settings, store, backend, ledger):
    return BatchUploadService(
        settings=settings,
        channels=settings.hf_channels,
        strategy=FirstChannelStrategy(),
        ledger=ledger,
        backend_factory=lambda channel: backend,
        recorder=PostCommitRecorder(store, BackgroundTasks()),
    )


@pytest.mark.asyncio
async def test_ledger_write_failure_still_returns_committed_batch(settings, store):
    backend = FakeBackend()
    service = make_service(settings, store, backend, BrokenLedger(store))
    request = BatchUploadRequest(requestId="batch-1", files=[file_entry("a.txt", b"x")])

    response = await service.upload(request)

    assert response["success"] is True
    assert response["commitId"] == "c0ffee"
    assert len(backend.commits) == 1
    assert store.get_with_metadata(file_key("a.txt"))[1]["FileName"] == "a.txt"
