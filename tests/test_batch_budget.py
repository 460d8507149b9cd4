from io import BytesIO

import pytest
from PIL import Image

from commit_gateway.app.core.errors import InvalidRequestError
from commit_gateway.app.schemas.batch_upload import FileInput
from commit_gateway.app.services.batch_budget import BatchLimits, prepare_batch
from conftest import file_entry, png_header

LIMITS = BatchLimits(max_files=3, max_total_size=1000, max_single_file_size=600)


def entries(*items):
    return [FileInput(**item) for item in items]


def test_prepares_files_with_full_ids_and_records():
    files = entries(
        file_entry("a.jpg", b"a" * 10, "image/jpeg"),
        file_entry("info.txt", b"hello", "text/plain"),
    )
    prepared = prepare_batch(files, "demo", LIMITS, upload_ip="203.0.113.9", timestamp_ms=1700000000000)

    assert [p.full_id for p in prepared] == ["demo/a.jpg", "demo/info.txt"]
    assert prepared[1].data == b"hello"
    assert prepared[1].size == 5
    record = prepared[1].record
    assert record.file_name == "info.txt"
    assert record.file_size_bytes == 5
    assert record.directory == "demo/"
    assert record.upload_ip == "203.0.113.9"
    assert record.label == "None"


def test_root_folder_uses_bare_names():
    prepared = prepare_batch(entries(file_entry("a.bin", b"x")), "", LIMITS)
    assert prepared[0].full_id == "a.bin"
    assert prepared[0].record.directory == ""


def test_rejects_too_many_files():
    files = entries(*[file_entry(f"f{i}.bin", b"x") for i in range(4)])
    with pytest.raises(InvalidRequestError, match="Too many files"):
        prepare_batch(files, "", LIMITS)


def test_single_file_size_boundary():
    prepare_batch(entries(file_entry("ok.bin", b"x" * 600)), "", LIMITS)
    with pytest.raises(InvalidRequestError, match=r"files\[0\] exceeds max single file size"):
        prepare_batch(entries(file_entry("big.bin", b"x" * 601)), "", LIMITS)


def test_total_size_boundary():
    exact = entries(file_entry("a.bin", b"x" * 500), file_entry("b.bin", b"y" * 500))
    assert len(prepare_batch(exact, "", LIMITS)) == 2

    over = entries(file_entry("a.bin", b"x" * 500), file_entry("b.bin", b"y" * 501))
    with pytest.raises(InvalidRequestError, match="Total files size exceeds limit"):
        prepare_batch(over, "", LIMITS)


def test_rejects_empty_content_with_index():
    files = entries(file_entry("a.bin", b"x"), {"name": "b.bin", "contentBase64": "data:text/plain;base64,"})
    with pytest.raises(InvalidRequestError, match=r"files\[1\] has empty content"):
        prepare_batch(files, "", LIMITS)


def test_rejects_duplicate_target_paths():
    files = entries(file_entry("b.jpg", b"1"), file_entry(" b.jpg ", b"2"))
    with pytest.raises(InvalidRequestError, match="Duplicate target path in files: a/b.jpg"):
        prepare_batch(files, "a", LIMITS)


def test_duplicate_check_is_case_sensitive():
    files = entries(file_entry("B.jpg", b"1"), file_entry("b.jpg", b"2"))
    assert len(prepare_batch(files, "a", LIMITS)) == 2


def test_rejects_traversal_name_before_decoding():
    files = entries({"name": "../etc", "mimeType": "text/plain", "contentBase64": "!!!not base64"})
    with pytest.raises(InvalidRequestError, match="path separators"):
        prepare_batch(files, "", LIMITS)


def test_rejects_malformed_base64():
    files = entries({"name": "a.bin", "contentBase64": "YWJj*ZGVm"})
    with pytest.raises(InvalidRequestError, match="Invalid base64"):
        prepare_batch(files, "", LIMITS)


def test_keeps_precomputed_sha256_normalized():
    prepared = prepare_batch(entries(file_entry("a.bin", b"x", sha256="  ABCDEF ")), "", LIMITS)
    assert prepared[0].sha256 == "abcdef"


def test_is_deterministic():
    files = entries(file_entry("a.bin", b"abc"), file_entry("b.bin", b"def"))
    first = prepare_batch(files, "d", LIMITS, timestamp_ms=1)
    second = prepare_batch(files, "d", LIMITS, timestamp_ms=1)
    assert first == second


def test_records_image_dimensions():
    buffer = BytesIO()
    Image.new("RGB", (7, 3), color="red").save(buffer, format="PNG")
    prepared = prepare_batch(entries(file_entry("dot.png", buffer.getvalue(), "image/png")), "", LIMITS)
    assert (prepared[0].record.width, prepared[0].record.height) == (7, 3)


def test_unreadable_image_is_still_accepted():
    prepared = prepare_batch(entries(file_entry("fake.png", b"not an image", "image/png")), "", LIMITS)
    assert prepared[0].record.width is None


def test_oversized_image_header_is_still_accepted():
    # Pillow refuses to open a 65000x65000 header as a decompression bomb.
    files = entries(
        file_entry("big.png", png_header(65000, 65000), "image/png"),
        file_entry("a.txt", b"x", "text/plain"),
    )
    prepared = prepare_batch(files, "", LIMITS)

    assert [p.full_id for p in prepared] == ["big.png", "a.txt"]
    assert prepared[0].record.width is None
    assert prepared[0].record.height is None
