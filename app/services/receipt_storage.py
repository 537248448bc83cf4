"""
Receipt Storage

Keeps uploaded payment receipts on the local filesystem and hands out
opaque references to them.
"""

import logging
import re
import secrets
import time
from functools import lru_cache
from pathlib import Path

from app.core.config import settings
from app.core.exceptions import ValidationError


logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def safe_filename(filename: str) -> str:
    name = Path(filename or "receipt").name
    return _UNSAFE_CHARS.sub("_", name) or "receipt"


class ReceiptStorage:
    """
    Filesystem-backed store for receipt artifacts.

    References have the form ``receipts/<unique name>`` and resolve
    inside ``base_dir`` only.
    """

    prefix = "receipts"

    def __init__(self, base_dir: str | Path, max_bytes: int = 10 * 1024 * 1024):
        self.base_dir = Path(base_dir)
        self.max_bytes = max_bytes

    def _path_for(self, receipt_ref: str) -> Path:
        name = Path(receipt_ref).name
        if not receipt_ref.startswith(f"{self.prefix}/") or not name:
            raise ValueError(f"Not a receipt reference: {receipt_ref!r}")
        return self.base_dir / name

    def save(self, filename: str, content: bytes) -> str:
        """
        Store a receipt file.

        Returns:
            str: Reference to pass to release().

        Raises:
            ValidationError: Empty or oversized upload.
        """
        if not content:
            raise ValidationError("Receipt file is empty", field="receiptFile")
        if len(content) > self.max_bytes:
            raise ValidationError(
                f"Receipt file exceeds {self.max_bytes // (1024 * 1024)} MB",
                field="receiptFile",
            )

        self.base_dir.mkdir(parents=True, exist_ok=True)
        unique = f"{int(time.time() * 1000)}_{secrets.token_hex(4)}_{safe_filename(filename)}"
        (self.base_dir / unique).write_bytes(content)
        return f"{self.prefix}/{unique}"

    def release(self, receipt_ref: str) -> bool:
        """
        Delete a stored receipt.

        A missing file counts as released. Other failures are logged and
        reported as False; callers never abort on them.
        """
        if not receipt_ref:
            return True
        try:
            self._path_for(receipt_ref).unlink(missing_ok=True)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not release receipt {receipt_ref}: {e}")
            return False
        return True


@lru_cache
def get_receipt_storage() -> ReceiptStorage:
    """Receipt storage configured from settings."""
    return ReceiptStorage(settings.RECEIPT_DIR, max_bytes=settings.RECEIPT_MAX_BYTES)
