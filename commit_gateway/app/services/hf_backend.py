"""
Client for the commit-oriented content store (HuggingFace Hub repositories).

The Hub charges its commit quota per ``create_commit`` call, not per file.
Large files are pre-uploaded to LFS storage ("staging") and then referenced
by sha256 and size in the commit; small files are embedded in the commit
payload. ``HfApi`` is synchronous, so calls run in worker threads.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from huggingface_hub import CommitOperationAdd, HfApi, hf_hub_url

from commit_gateway.app.core.config import Channel

logger = logging.getLogger(__name__)


class CommitBackend(ABC):
    """The surface the commit aggregator depends on."""

    @abstractmethod
    def build_operation(self, path: str, data: bytes) -> Any:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def operation_sha256(self, operation: Any) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    async def stage(self, operation: Any) -> bool:  # pragma: no cover - interface
        """Upload the operation's bytes ahead of the commit if the backend wants
        them as a large object. Returns True when bytes were staged."""
        raise NotImplementedError

    @abstractmethod
    async def commit(self, operations: Sequence[Any], message: str) -> Any:  # pragma: no cover - interface
        raise NotImplementedError

    @abstractmethod
    def file_url(self, path: str) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class HuggingFaceBackend(CommitBackend):
    def __init__(self, channel: Channel, api: Optional[HfApi] = None, timeout_seconds: Optional[float] = None):
        self.channel = channel
        self.api = api or HfApi(token=channel.token)
        self.timeout_seconds = timeout_seconds

    def build_operation(self, path: str, data: bytes) -> CommitOperationAdd:
        # Hashes the payload; the sha256 is what LFS staging is addressed by.
        return CommitOperationAdd(path_in_repo=path, path_or_fileobj=data)

    def operation_sha256(self, operation: CommitOperationAdd) -> str:
        return operation.upload_info.sha256.hex()

    async def stage(self, operation: CommitOperationAdd) -> bool:
        await self._run(
            f"Staging of {operation.path_in_repo}",
            self.api.preupload_lfs_files,
            repo_id=self.channel.repo,
            additions=[operation],
            token=self.channel.token,
            repo_type=self.channel.repo_type,
            revision=self.channel.revision,
        )
        staged = getattr(operation, "_upload_mode", None) == "lfs"
        logger.debug("Staging %s -> %s", operation.path_in_repo, "lfs" if staged else "inline")
        return staged

    async def commit(self, operations: Sequence[CommitOperationAdd], message: str) -> Any:
        return await self._run(
            "Commit",
            self.api.create_commit,
            repo_id=self.channel.repo,
            operations=list(operations),
            commit_message=message,
            token=self.channel.token,
            repo_type=self.channel.repo_type,
            revision=self.channel.revision,
        )

    def file_url(self, path: str) -> str:
        return hf_hub_url(
            repo_id=self.channel.repo,
            filename=path,
            repo_type=self.channel.repo_type,
            revision=self.channel.revision,
        )

    async def _run(self, action: str, func, **kwargs) -> Any:
        call = asyncio.to_thread(func, **kwargs)
        if not self.timeout_seconds:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            # The worker thread keeps running; the backend may still apply the call.
            raise TimeoutError(f"{action} timed out after {self.timeout_seconds} seconds") from None


def extract_commit_id(commit_result: Any) -> Optional[str]:
    """Pull the commit identifier out of whatever the backend returned."""
    if commit_result is None:
        return None
    if isinstance(commit_result, dict):
        commit = commit_result.get("commit") or {}
        candidates: List[Any] = [
            commit.get("oid") if isinstance(commit, dict) else None,
            commit.get("id") if isinstance(commit, dict) else None,
            commit_result.get("commitOid"),
            commit_result.get("oid"),
        ]
    else:
        candidates = [getattr(commit_result, "oid", None)]
    return next((str(c) for c in candidates if c), None)


def error_status(exc: BaseException) -> Optional[int]:
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(exc, "status_code", None)
    return status if isinstance(status, int) else None


def error_retry_after(exc: BaseException) -> Optional[int]:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None) or {}
    raw = headers.get("Retry-After") or headers.get("retry-after")
    if raw is None:
        return None
    try:
        return max(0, int(float(raw)))
    except (TypeError, ValueError):
        return None
