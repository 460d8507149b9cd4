import base64
import hashlib
import struct
import zlib
from dataclasses import dataclass
from typing import Any, List, Optional

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from commit_gateway.app.api.deps import (
    get_backend_factory,
    get_channel_strategy,
    get_kv_store,
    get_moderation_client,
)
from commit_gateway.app.core.config import Settings, get_settings
from commit_gateway.app.main import create_app
from commit_gateway.app.services.channel_selector import FirstChannelStrategy
from commit_gateway.app.services.hf_backend import CommitBackend
from commit_gateway.app.storage.kv_store import MemoryKeyValueStore

TEST_SECRET = "test-secret"


@dataclass
class FakeOperation:
    path_in_repo: str
    data: bytes
    sha256: str


class FakeBackend(CommitBackend):
    """Records every call; files at or above ``lfs_threshold`` bytes are staged."""

    def __init__(self, lfs_threshold: int = 1024, commit_error: Optional[BaseException] = None,
                 stage_error: Optional[BaseException] = None, commit_result: Any = None):
        self.lfs_threshold = lfs_threshold
        self.commit_error = commit_error
        self.stage_error = stage_error
        self.commit_result = commit_result if commit_result is not None else {"commit": {"oid": "c0ffee"}}
        self.staged: List[str] = []
        self.commits: List[dict] = []

    def build_operation(self, path: str, data: bytes) -> FakeOperation:
        return FakeOperation(path, data, hashlib.sha256(data).hexdigest())

    def operation_sha256(self, operation: FakeOperation) -> str:
        return operation.sha256

    async def stage(self, operation: FakeOperation) -> bool:
        if self.stage_error is not None:
            raise self.stage_error
        if len(operation.data) < self.lfs_threshold:
            return False
        self.staged.append(operation.path_in_repo)
        return True

    async def commit(self, operations, message: str) -> Any:
        self.commits.append({"paths": [op.path_in_repo for op in operations], "message": message})
        if self.commit_error is not None:
            raise self.commit_error
        return self.commit_result

    def file_url(self, path: str) -> str:
        return f"https://huggingface.co/datasets/acme/files/resolve/main/{path}"


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def file_entry(name: str, data: bytes, mime_type: str = "application/octet-stream", **extra) -> dict:
    return {"name": name, "mimeType": mime_type, "contentBase64": b64(data), **extra}


def png_header(width: int, height: int) -> bytes:
    """PNG signature plus IHDR, enough for Pillow to read the declared size."""
    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    chunk = struct.pack(">I", len(ihdr)) + b"IHDR" + ihdr + struct.pack(">I", zlib.crc32(b"IHDR" + ihdr))
    return b"\x89PNG\r\n\x1a\n" + chunk + struct.pack(">I", 0) + b"IDAT"


def make_token(sub: str = "1", permissions=("upload",), secret: str = TEST_SECRET) -> str:
    return jwt.encode({"sub": sub, "permissions": list(permissions)}, secret, algorithm="HS256")


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        HF_CHANNELS=[
            {"name": "main", "token": "hf_main", "repo": "acme/files"},
            {"name": "private", "token": "hf_private", "repo": "acme/private", "isPrivate": True},
        ],
        KV_BACKEND="memory",
        AUTH_SECRET_KEY=TEST_SECRET,
        HF_BATCH_MAX_FILES=5,
        HF_BATCH_MAX_TOTAL_SIZE=10_000,
        HF_BATCH_MAX_SINGLE_FILE_SIZE=4_000,
    )


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def app(settings, store, backend):
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_kv_store] = lambda: store
    app.dependency_overrides[get_channel_strategy] = lambda: FirstChannelStrategy()
    app.dependency_overrides[get_backend_factory] = lambda: (lambda channel: backend)
    app.dependency_overrides[get_moderation_client] = lambda: None
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}
