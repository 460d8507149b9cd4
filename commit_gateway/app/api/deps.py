from functools import lru_cache
from typing import Callable, List, Optional

from fastapi import BackgroundTasks, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from commit_gateway.app.core.config import Channel, Settings, get_settings
from commit_gateway.app.core.errors import AuthError
from commit_gateway.app.schemas.auth import UploadPrincipal
from commit_gateway.app.services.batch_upload_service import BatchUploadService
from commit_gateway.app.services.channel_selector import ChannelSelectionStrategy, strategy_for
from commit_gateway.app.services.hf_backend import CommitBackend, HuggingFaceBackend
from commit_gateway.app.services.idempotency import IdempotencyLedger
from commit_gateway.app.services.moderation_client import ModerationClient
from commit_gateway.app.services.post_commit import PostCommitRecorder
from commit_gateway.app.services.upload_events import UploadEventPublisher
from commit_gateway.app.storage.kv_store import (
    KeyValueStore,
    MemoryKeyValueStore,
    RedisKeyValueStore,
    get_redis_connection,
)

UPLOAD_PERMISSION = "upload"

security = HTTPBearer(auto_error=False)


def get_upload_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> Optional[UploadPrincipal]:
    if not settings.auth_required:
        return None
    if credentials is None:
        raise AuthError("Unauthorized")
    try:
        payload = jwt.decode(credentials.credentials, settings.auth_secret_key, algorithms=[settings.auth_algorithm])
    except JWTError:
        raise AuthError("Invalid or expired token") from None

    sub = payload.get("sub")
    if sub is None:
        raise AuthError("Invalid or expired token")
    permissions = list(payload.get("permissions") or [])
    permissions.extend((payload.get("scope") or "").split())
    principal = UploadPrincipal(subject=str(sub), permissions=permissions, email=payload.get("email"))
    if not principal.can(UPLOAD_PERMISSION):
        raise AuthError("Unauthorized")
    return principal


def get_upload_ip(request: Request) -> Optional[str]:
    headers = request.headers
    for header in ("cf-connecting-ip", "x-real-ip"):
        if headers.get(header):
            return headers[header].strip()
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


_memory_store = MemoryKeyValueStore()


def get_kv_store(settings: Settings = Depends(get_settings)) -> KeyValueStore:
    if settings.kv_backend == "memory":
        return _memory_store
    return RedisKeyValueStore(get_redis_connection())


def get_channels(settings: Settings = Depends(get_settings)) -> List[Channel]:
    return list(settings.hf_channels)


@lru_cache
def _strategy(name: str) -> ChannelSelectionStrategy:
    # Cached so round-robin keeps its position across requests.
    return strategy_for(name)


def get_channel_strategy(settings: Settings = Depends(get_settings)) -> ChannelSelectionStrategy:
    return _strategy(settings.channel_strategy)


def get_backend_factory(settings: Settings = Depends(get_settings)) -> Callable[[Channel], CommitBackend]:
    def factory(channel: Channel) -> CommitBackend:
        return HuggingFaceBackend(channel, timeout_seconds=settings.hf_commit_timeout_seconds)

    return factory


def get_moderation_client(settings: Settings = Depends(get_settings)) -> Optional[ModerationClient]:
    if not settings.upload_moderate_enabled or not settings.moderation_api_url:
        return None
    return ModerationClient(
        settings.moderation_api_url,
        api_key=settings.moderation_api_key,
        timeout_seconds=settings.moderation_timeout_seconds,
    )


def get_event_publisher(settings: Settings = Depends(get_settings)) -> Optional[UploadEventPublisher]:
    if not settings.upload_events_enabled:
        return None
    return UploadEventPublisher(get_redis_connection(), settings.upload_events_queue)


def get_batch_upload_service(
    background_tasks: BackgroundTasks,
    settings: Settings = Depends(get_settings),
    store: KeyValueStore = Depends(get_kv_store),
    channels: List[Channel] = Depends(get_channels),
    strategy: ChannelSelectionStrategy = Depends(get_channel_strategy),
    backend_factory: Callable[[Channel], CommitBackend] = Depends(get_backend_factory),
    moderation: Optional[ModerationClient] = Depends(get_moderation_client),
    events: Optional[UploadEventPublisher] = Depends(get_event_publisher),
) -> BatchUploadService:
    recorder = PostCommitRecorder(store, background_tasks, moderation=moderation, events=events)
    return BatchUploadService(
        settings=settings,
        channels=channels,
        strategy=strategy,
        ledger=IdempotencyLedger(store),
        backend_factory=backend_factory,
        recorder=recorder,
    )
