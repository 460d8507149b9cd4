"""
One backend commit per batch.

The content store consumes quota per commit, so every prepared file of a
batch goes into a single ``commit`` call. Files the backend wants as large
objects are staged first (concurrently, bounded by a semaphore); staging does
not consume commit quota. Each file moves through ``FileUploadState``:

    PREPARED -> STAGED -> COMMITTED     large objects
    PREPARED -> COMMITTED               payload embedded in the commit
    STAGED -> FAILED                    commit failed after staging

Nothing here retries: a commit that failed after staging may already have
had side effects, and a second attempt could double-charge the quota.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from commit_gateway.app.core.errors import InvalidRequestError
from commit_gateway.app.services.batch_budget import PreparedFile
from commit_gateway.app.services.hf_backend import CommitBackend, extract_commit_id

logger = logging.getLogger(__name__)

DEFAULT_STAGING_CONCURRENCY = 4


class FileUploadState(str, enum.Enum):
    PREPARED = "prepared"
    STAGED = "staged"
    COMMITTED = "committed"
    FAILED = "failed"


class UploadStage(str, enum.Enum):
    STAGING = "staging"
    COMMIT = "commit"


@dataclass
class FileUpload:
    file: PreparedFile
    operation: Any
    state: FileUploadState = FileUploadState.PREPARED
    staged: bool = False
    url: Optional[str] = None


@dataclass
class CommitResult:
    commit_id: Optional[str]
    files: List[FileUpload] = field(default_factory=list)
    commit_url: Optional[str] = None


class BatchCommitError(Exception):
    """A backend failure during staging or commit, with the files already staged."""

    def __init__(self, stage: UploadStage, cause: BaseException, staged_files: Optional[List[FileUpload]] = None):
        super().__init__(str(cause) or cause.__class__.__name__)
        self.stage = stage
        self.cause = cause
        self.staged_files = staged_files or []


def default_commit_message(file_count: int) -> str:
    return f"Batch upload {file_count} files"


def _build_uploads(backend: CommitBackend, files: Sequence[PreparedFile]) -> List[FileUpload]:
    uploads = []
    for index, prepared in enumerate(files):
        operation = backend.build_operation(prepared.file_path, prepared.data)
        if prepared.sha256:
            actual = backend.operation_sha256(operation)
            if actual != prepared.sha256:
                raise InvalidRequestError(f"files[{index}] sha256 does not match content")
        uploads.append(FileUpload(file=prepared, operation=operation))
    return uploads


async def _stage_all(backend: CommitBackend, uploads: List[FileUpload], concurrency: int) -> None:
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _stage(upload: FileUpload) -> None:
        async with semaphore:
            staged = await backend.stage(upload.operation)
        if staged:
            upload.staged = True
            upload.state = FileUploadState.STAGED

    # gather keeps input order and waits for every staging call, failed or not
    results = await asyncio.gather(*(_stage(u) for u in uploads), return_exceptions=True)
    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        staged = [u for u in uploads if u.staged]
        if staged:
            logger.warning(
                "Staging failed with %d large objects already uploaded and unreferenced",
                len(staged),
                extra={"files": [u.file.full_id for u in staged]},
            )
        raise BatchCommitError(UploadStage.STAGING, failures[0], staged)


async def commit_batch(
    backend: CommitBackend,
    files: Sequence[PreparedFile],
    commit_message: Optional[str] = None,
    staging_concurrency: int = DEFAULT_STAGING_CONCURRENCY,
) -> CommitResult:
    """Write every file in ``files`` with exactly one backend commit."""
    uploads = _build_uploads(backend, files)
    await _stage_all(backend, uploads, staging_concurrency)

    message = commit_message or default_commit_message(len(uploads))
    try:
        raw_result = await backend.commit([u.operation for u in uploads], message)
    except Exception as exc:
        staged = [u for u in uploads if u.staged]
        for upload in staged:
            upload.state = FileUploadState.FAILED
        logger.error(
            "Commit failed after staging %d of %d files: %s",
            len(staged),
            len(uploads),
            exc,
        )
        raise BatchCommitError(UploadStage.COMMIT, exc, staged) from exc

    for upload in uploads:
        upload.state = FileUploadState.COMMITTED
        upload.url = backend.file_url(upload.file.file_path)

    commit_id = extract_commit_id(raw_result)
    logger.info("Committed %d files in one commit", len(uploads), extra={"commit_id": commit_id})
    return CommitResult(
        commit_id=commit_id,
        files=uploads,
        commit_url=getattr(raw_result, "commit_url", None),
    )
