"""
Pure normalization of raw batch input.

Nothing here performs I/O. Every rejection raises ``InvalidRequestError`` so
the endpoint answers 400 before any backend call is made.
"""
import base64
import binascii
import re
from typing import Any, Optional

from commit_gateway.app.core.errors import InvalidRequestError
from commit_gateway.app.services.mime_types import DEFAULT_MIME_TYPE, resolve_mime_type
from commit_gateway.app.storage.keys import RESERVED_PREFIX

MAX_FILE_NAME_LENGTH = 255

_WHITESPACE_RE = re.compile(r"\s+")
_MULTI_SLASH_RE = re.compile(r"/{2,}")


def normalize_upload_folder(upload_folder: Any) -> str:
    """Canonical folder path without leading/trailing slashes; '' for the root."""
    if upload_folder is None:
        return ""

    normalized = str(upload_folder).strip().strip("/")
    normalized = _MULTI_SLASH_RE.sub("/", normalized).strip()
    if not normalized:
        return ""

    for segment in normalized.split("/"):
        if not segment or segment in (".", ".."):
            raise InvalidRequestError("Invalid uploadFolder: contains illegal path segment")
        if segment.startswith(RESERVED_PREFIX):
            raise InvalidRequestError("Invalid uploadFolder: reserved segment name")
    return normalized


def normalize_file_name(name: Any) -> str:
    if not isinstance(name, str):
        raise InvalidRequestError("File name must be a string")

    trimmed = name.strip()
    if not trimmed:
        raise InvalidRequestError("File name cannot be empty")
    if len(trimmed) > MAX_FILE_NAME_LENGTH:
        raise InvalidRequestError("File name is too long")
    if trimmed in (".", ".."):
        raise InvalidRequestError("File name cannot be . or ..")
    if "/" in trimmed or "\\" in trimmed:
        raise InvalidRequestError("File name cannot contain path separators")
    if trimmed.startswith(RESERVED_PREFIX):
        raise InvalidRequestError("File name cannot use reserved prefix")
    return trimmed


def normalize_mime_type(
    mime_type: Any,
    file_name: Optional[str] = None,
    content: Optional[str] = None,
) -> str:
    declared = mime_type.strip() if isinstance(mime_type, str) else None
    return resolve_mime_type(declared or None, file_name, data_url_value=content, default=DEFAULT_MIME_TYPE)


def normalize_content_base64(content_base64: Any) -> str:
    """Strip an optional data-URL header and all whitespace from the payload."""
    if not isinstance(content_base64, str) or not content_base64.strip():
        raise InvalidRequestError("contentBase64 is required")

    value = content_base64.strip()
    comma = value.find(",")
    if value.startswith("data:") and comma != -1:
        value = value[comma + 1 :]
    return _WHITESPACE_RE.sub("", value)


def estimate_base64_size(base64_data: str) -> int:
    length = len(base64_data)
    if length == 0:
        return 0
    if base64_data.endswith("=="):
        padding = 2
    elif base64_data.endswith("="):
        padding = 1
    else:
        padding = 0
    return max(0, (length * 3) // 4 - padding)


def decode_base64(base64_data: str) -> bytes:
    try:
        return base64.b64decode(base64_data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidRequestError("Invalid base64 content") from None


def join_full_id(folder: str, file_name: str) -> str:
    return f"{folder}/{file_name}" if folder else file_name


def normalize_sha256(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip().lower()
    return None
