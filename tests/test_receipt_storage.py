"""
Tests for the filesystem receipt store.
"""

from unittest.mock import patch

import pytest

from app.core.exceptions import ValidationError
from app.services.receipt_storage import ReceiptStorage, safe_filename


class TestSafeFilename:
    def test_strips_directories_and_odd_characters(self):
        assert safe_filename("../../etc/passwd") == "passwd"
        assert safe_filename("my receipt (1).jpg") == "my_receipt__1_.jpg"
        assert safe_filename("") == "receipt"


class TestReceiptStorage:
    def test_save_and_release(self, tmp_path):
        storage = ReceiptStorage(tmp_path / "store", max_bytes=100)

        ref = storage.save("paid.png", b"image-bytes")

        assert ref.startswith("receipts/")
        assert ref.endswith("_paid.png")
        stored = tmp_path / "store" / ref.split("/", 1)[1]
        assert stored.read_bytes() == b"image-bytes"

        assert storage.release(ref) is True
        assert not stored.exists()
        # Releasing twice is harmless
        assert storage.release(ref) is True

    def test_refs_are_unique(self, tmp_path):
        storage = ReceiptStorage(tmp_path)

        refs = {storage.save("same.png", b"x") for _ in range(10)}

        assert len(refs) == 10

    def test_rejects_empty_upload(self, tmp_path):
        storage = ReceiptStorage(tmp_path)

        with pytest.raises(ValidationError):
            storage.save("empty.png", b"")

    def test_rejects_oversized_upload(self, tmp_path):
        storage = ReceiptStorage(tmp_path, max_bytes=10)

        with pytest.raises(ValidationError) as exc_info:
            storage.save("big.png", b"x" * 11)
        assert exc_info.value.field == "receiptFile"

    def test_release_ignores_foreign_references(self, tmp_path):
        outside = tmp_path / "keep.txt"
        outside.write_text("keep")
        storage = ReceiptStorage(tmp_path / "store")

        assert storage.release("../keep.txt") is False
        assert storage.release("") is True
        assert outside.exists()

    def test_release_failure_is_reported_not_raised(self, tmp_path, caplog):
        storage = ReceiptStorage(tmp_path)
        ref = storage.save("paid.png", b"x")

        with patch("pathlib.Path.unlink", side_effect=PermissionError("denied")):
            assert storage.release(ref) is False

        assert "Could not release receipt" in caplog.text
