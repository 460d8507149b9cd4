import re
from typing import Optional

DEFAULT_MIME_TYPE = "application/octet-stream"

EXTENSION_MIME_MAP = {
    "avif": "image/avif",
    "bmp": "image/bmp",
    "css": "text/css; charset=utf-8",
    "csv": "text/csv; charset=utf-8",
    "gif": "image/gif",
    "heic": "image/heic",
    "heif": "image/heif",
    "htm": "text/html; charset=utf-8",
    "html": "text/html; charset=utf-8",
    "ico": "image/x-icon",
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "js": "application/javascript; charset=utf-8",
    "json": "application/json; charset=utf-8",
    "md": "text/markdown; charset=utf-8",
    "mp3": "audio/mpeg",
    "mp4": "video/mp4",
    "mpeg": "video/mpeg",
    "mpg": "video/mpeg",
    "m4a": "audio/mp4",
    "mov": "video/quicktime",
    "pdf": "application/pdf",
    "png": "image/png",
    "svg": "image/svg+xml",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "txt": "text/plain; charset=utf-8",
    "wav": "audio/wav",
    "webm": "video/webm",
    "webp": "image/webp",
    "xml": "application/xml; charset=utf-8",
    "zip": "application/zip",
}

_MIME_RE = re.compile(r"^[a-z0-9!#$&^_.+-]+/[a-z0-9!#$&^_.+-]+(?:\s*;\s*.+)?$", re.IGNORECASE)


def parse_mime_type(value: Optional[str]) -> Optional[str]:
    """Return the trimmed mime type if it is well formed, else None."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed or not _MIME_RE.match(trimmed):
        return None
    return trimmed


def is_octet_stream(value: Optional[str]) -> bool:
    if not isinstance(value, str):
        return False
    base = value.split(";")[0].strip().lower()
    return base == DEFAULT_MIME_TYPE


def mime_type_from_file_name(file_name: Optional[str]) -> Optional[str]:
    if not isinstance(file_name, str) or not file_name.strip():
        return None
    base_name = file_name.split("?")[0].split("#")[0].split("/")[-1]
    dot = base_name.rfind(".")
    if dot <= 0 or dot == len(base_name) - 1:
        return None
    return EXTENSION_MIME_MAP.get(base_name[dot + 1 :].lower())


def mime_type_from_data_url(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed.startswith("data:"):
        return None
    comma = trimmed.find(",")
    if comma <= 5:
        return None
    return parse_mime_type(trimmed[5:comma].split(";")[0])


def resolve_mime_type(
    mime_type: Optional[str],
    file_name: Optional[str],
    data_url_value: Optional[str] = None,
    default: str = DEFAULT_MIME_TYPE,
) -> str:
    """
    Pick the most specific mime type available for an upload.

    A declared, well-formed type wins unless it is the generic octet-stream;
    otherwise the data-URL header and then the file extension are consulted
    before falling back to whatever was declared, and finally ``default``.
    """
    declared = parse_mime_type(mime_type)
    if declared and not is_octet_stream(declared):
        return declared

    from_data_url = mime_type_from_data_url(data_url_value)
    if from_data_url:
        return from_data_url

    from_name = mime_type_from_file_name(file_name)
    if from_name:
        return from_name

    return declared or default
