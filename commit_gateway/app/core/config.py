import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_FILES = 50
DEFAULT_MAX_TOTAL_SIZE = 80 * 1024 * 1024
DEFAULT_MAX_SINGLE_FILE_SIZE = 20 * 1024 * 1024


class Channel(BaseModel):
    name: str
    token: Optional[str] = None
    repo: Optional[str] = None
    repo_type: str = "dataset"
    revision: str = "main"
    is_private: bool = Field(False, alias="isPrivate")
    load_balance: bool = Field(True, alias="loadBalance")

    model_config = ConfigDict(populate_by_name=True)


class Settings(BaseSettings):
    hf_batch_max_files: int = Field(DEFAULT_MAX_FILES, alias="HF_BATCH_MAX_FILES")
    hf_batch_max_total_size: int = Field(DEFAULT_MAX_TOTAL_SIZE, alias="HF_BATCH_MAX_TOTAL_SIZE")
    hf_batch_max_single_file_size: int = Field(
        DEFAULT_MAX_SINGLE_FILE_SIZE, alias="HF_BATCH_MAX_SINGLE_FILE_SIZE"
    )
    hf_channels: List[Channel] = Field(default_factory=list, alias="HF_CHANNELS")
    hf_load_balance_enabled: bool = Field(False, alias="HF_LOAD_BALANCE_ENABLED")
    hf_channel_strategy: Optional[str] = Field(None, alias="HF_CHANNEL_STRATEGY")
    hf_staging_concurrency: int = Field(4, alias="HF_STAGING_CONCURRENCY")
    hf_commit_timeout_seconds: int = Field(120, alias="HF_COMMIT_TIMEOUT_SECONDS")

    kv_backend: str = Field("redis", alias="KV_BACKEND")
    redis_host: str = Field("localhost", alias="REDIS_HOST")
    redis_port: int = Field(6379, alias="REDIS_PORT")
    redis_password: Optional[str] = Field(None, alias="REDIS_PASSWORD")
    redis_db: int = Field(0, alias="REDIS_DB")

    auth_secret_key: str = Field("change-me", alias="AUTH_SECRET_KEY")
    auth_algorithm: str = Field("HS256", alias="AUTH_ALGORITHM")
    auth_required: bool = Field(True, alias="AUTH_REQUIRED")

    upload_moderate_enabled: bool = Field(False, alias="UPLOAD_MODERATE_ENABLED")
    moderation_api_url: Optional[str] = Field(None, alias="MODERATION_API_URL")
    moderation_api_key: Optional[str] = Field(None, alias="MODERATION_API_KEY")
    moderation_timeout_seconds: int = Field(20, alias="MODERATION_TIMEOUT_SECONDS")

    upload_events_enabled: bool = Field(False, alias="UPLOAD_EVENTS_ENABLED")
    upload_events_queue: str = Field("gateway.uploads.events", alias="UPLOAD_EVENTS_QUEUE")

    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator("hf_batch_max_files", "hf_batch_max_total_size", "hf_batch_max_single_file_size", mode="before")
    @classmethod
    def _positive_limit(cls, value, info):
        fallbacks = {
            "hf_batch_max_files": DEFAULT_MAX_FILES,
            "hf_batch_max_total_size": DEFAULT_MAX_TOTAL_SIZE,
            "hf_batch_max_single_file_size": DEFAULT_MAX_SINGLE_FILE_SIZE,
        }
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            return fallbacks[info.field_name]
        return parsed if parsed > 0 else fallbacks[info.field_name]

    @property
    def channel_strategy(self) -> str:
        if self.hf_channel_strategy:
            return self.hf_channel_strategy.strip().lower()
        return "random" if self.hf_load_balance_enabled else "first"


logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()
    except PermissionError:
        logger.warning("Unable to read .env; continuing with environment variables only")
        settings = Settings(_env_file=None)
    return settings
