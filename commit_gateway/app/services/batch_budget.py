"""
Validation and budgeting of an incoming batch.

``prepare_batch`` walks the raw entries in order, normalizes each one and
keeps running totals so the batch fails on the first offending entry. No
I/O happens here: the same input always yields the same prepared files or
the same error.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from commit_gateway.app.core.config import (
    DEFAULT_MAX_FILES,
    DEFAULT_MAX_SINGLE_FILE_SIZE,
    DEFAULT_MAX_TOTAL_SIZE,
    Settings,
)
from commit_gateway.app.core.errors import InvalidRequestError
from commit_gateway.app.schemas.batch_upload import FileInput
from commit_gateway.app.schemas.index_record import IndexRecord, format_size_mb
from commit_gateway.app.services import normalizer
from commit_gateway.app.services.image_metadata import sniff_image_dimensions
from commit_gateway.app.storage.keys import RESERVED_PREFIX

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchLimits:
    max_files: int = DEFAULT_MAX_FILES
    max_total_size: int = DEFAULT_MAX_TOTAL_SIZE
    max_single_file_size: int = DEFAULT_MAX_SINGLE_FILE_SIZE

    @classmethod
    def from_settings(cls, settings: Settings) -> "BatchLimits":
        return cls(
            max_files=settings.hf_batch_max_files,
            max_total_size=settings.hf_batch_max_total_size,
            max_single_file_size=settings.hf_batch_max_single_file_size,
        )


@dataclass(frozen=True)
class PreparedFile:
    name: str
    full_id: str
    data: bytes
    size: int
    mime_type: str
    sha256: Optional[str]
    record: IndexRecord

    @property
    def file_path(self) -> str:
        return self.full_id


def check_file_count(count: int, limits: BatchLimits) -> None:
    if count == 0:
        raise InvalidRequestError("files must be a non-empty array")
    if count > limits.max_files:
        raise InvalidRequestError(f"Too many files, max allowed: {limits.max_files}")


def prepare_batch(
    files: Sequence[FileInput],
    folder: str,
    limits: BatchLimits,
    upload_ip: Optional[str] = None,
    timestamp_ms: int = 0,
) -> List[PreparedFile]:
    """
    Turn raw entries into prepared files or raise ``InvalidRequestError``.

    ``folder`` must already be normalized. Sizes are first estimated from the
    encoded length so oversized entries are rejected before decoding; the
    decoded length is then checked against the same limits.
    """
    check_file_count(len(files), limits)

    prepared: List[PreparedFile] = []
    seen_ids = set()
    estimated_total = 0
    decoded_total = 0
    directory = f"{folder}/" if folder else ""

    for index, entry in enumerate(files):
        name = normalizer.normalize_file_name(entry.name)
        base64_data = normalizer.normalize_content_base64(entry.content_base64)
        mime_type = normalizer.normalize_mime_type(entry.mime_type, name, entry.content_base64)

        estimated = normalizer.estimate_base64_size(base64_data)
        _check_single_size(index, estimated, limits)
        estimated_total += estimated
        if estimated_total > limits.max_total_size:
            raise InvalidRequestError(f"Total files size exceeds limit ({limits.max_total_size} bytes)")

        full_id = normalizer.join_full_id(folder, name)
        if full_id.startswith(RESERVED_PREFIX):
            raise InvalidRequestError(f"files[{index}] uses reserved path")
        if full_id in seen_ids:
            raise InvalidRequestError(f"Duplicate target path in files: {full_id}")
        seen_ids.add(full_id)

        data = normalizer.decode_base64(base64_data)
        size = len(data)
        _check_single_size(index, size, limits)
        decoded_total += size
        if decoded_total > limits.max_total_size:
            raise InvalidRequestError(f"Total files size exceeds limit ({limits.max_total_size} bytes)")

        record = IndexRecord(
            FileName=name,
            FileType=mime_type,
            FileSize=format_size_mb(size),
            FileSizeBytes=size,
            UploadIP=upload_ip,
            TimeStamp=timestamp_ms,
            Directory=directory,
        )
        dimensions = sniff_image_dimensions(data, mime_type)
        if dimensions:
            record.width, record.height = dimensions

        prepared.append(
            PreparedFile(
                name=name,
                full_id=full_id,
                data=data,
                size=size,
                mime_type=mime_type,
                sha256=normalizer.normalize_sha256(entry.sha256),
                record=record,
            )
        )

    logger.debug("Prepared %d files (%d bytes) for folder %r", len(prepared), decoded_total, folder)
    return prepared


def _check_single_size(index: int, size: int, limits: BatchLimits) -> None:
    if size <= 0:
        raise InvalidRequestError(f"files[{index}] has empty content")
    if size > limits.max_single_file_size:
        raise InvalidRequestError(
            f"files[{index}] exceeds max single file size limit ({limits.max_single_file_size} bytes)"
        )
