from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_REQUEST_ID_LENGTH = 128


class FileInput(BaseModel):
    # Types are checked by the normalizer so failures carry the entry index.
    name: Any = None
    mime_type: Any = Field(None, alias="mimeType")
    content_base64: Any = Field(None, alias="contentBase64")
    sha256: Any = None

    model_config = ConfigDict(populate_by_name=True)


class BatchUploadRequest(BaseModel):
    upload_folder: Optional[str] = Field("", alias="uploadFolder")
    channel_name: Optional[str] = Field(None, alias="channelName")
    files: List[FileInput] = Field(..., min_length=1)
    commit_message: Optional[str] = Field(None, alias="commitMessage")
    request_id: Optional[str] = Field(None, alias="requestId")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("request_id")
    @classmethod
    def _check_request_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not value.strip() or len(value) > MAX_REQUEST_ID_LENGTH:
            raise ValueError("requestId must be a non-empty string up to 128 chars")
        return value


class BatchFileResult(BaseModel):
    name: str
    src: str
    full_id: str = Field(..., alias="fullId")

    model_config = ConfigDict(populate_by_name=True)


class BatchUploadResponse(BaseModel):
    success: bool = True
    request_id: Optional[str] = Field(None, alias="requestId")
    commit_id: Optional[str] = Field(None, alias="commitId")
    channel_name: Optional[str] = Field(None, alias="channelName")
    repo: Optional[str] = None
    files: List[BatchFileResult]
    idempotent: Optional[bool] = None

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> dict:
        payload = self.model_dump(by_alias=True)
        if self.idempotent is None:
            payload.pop("idempotent")
        return payload
