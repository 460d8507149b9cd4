from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

UNCLASSIFIED_LABEL = "None"


class IndexRecord(BaseModel):
    """Per-file listing record; serialized with the keys file listings read."""

    file_name: str = Field(..., alias="FileName")
    file_type: str = Field(..., alias="FileType")
    file_size: str = Field(..., alias="FileSize")
    file_size_bytes: int = Field(..., alias="FileSizeBytes")
    upload_ip: Optional[str] = Field(None, alias="UploadIP")
    list_type: str = Field("None", alias="ListType")
    timestamp: int = Field(..., alias="TimeStamp")
    label: str = Field(UNCLASSIFIED_LABEL, alias="Label")
    directory: str = Field("", alias="Directory")
    tags: List[str] = Field(default_factory=list, alias="Tags")
    width: Optional[int] = Field(None, alias="Width")
    height: Optional[int] = Field(None, alias="Height")
    channel: Optional[str] = Field(None, alias="Channel")
    channel_name: Optional[str] = Field(None, alias="ChannelName")
    hf_repo: Optional[str] = Field(None, alias="HfRepo")
    hf_file_path: Optional[str] = Field(None, alias="HfFilePath")
    hf_is_private: Optional[bool] = Field(None, alias="HfIsPrivate")
    hf_file_url: Optional[str] = Field(None, alias="HfFileUrl")

    model_config = ConfigDict(populate_by_name=True)

    def to_metadata(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def format_size_mb(size_bytes: int) -> str:
    return f"{size_bytes / 1024 / 1024:.2f}"
