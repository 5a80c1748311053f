"""Validation and on-disk storage for payment proof uploads."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from pathlib import Path
from typing import Sequence

from fastapi import UploadFile

from ..config import Settings, get_settings
from ..domain.contracts import ProofFile
from ..errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/gif", "application/pdf"}
)
_CHUNK_SIZE = 64 * 1024


def _size_label(limit: int) -> str:
    megabytes = limit / (1024 * 1024)
    return f"{megabytes:g}MB" if megabytes >= 1 else f"{limit} bytes"


def stored_filename(original_name: str, now_ms: int | None = None, token: int | None = None) -> str:
    """Build ``<basename>-<timestamp>-<random><ext>`` from the client supplied name."""
    name = Path(original_name or "proof").name
    suffix = Path(name).suffix
    stem = Path(name).stem or "proof"
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    token = token if token is not None else secrets.randbelow(10**9)
    return f"{stem}-{now_ms}-{token}{suffix}"


class ProofStorage:
    def __init__(self, directory: str | Path, max_file_size: int) -> None:
        self._directory = Path(directory)
        self._max_file_size = max_file_size

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ProofStorage":
        settings = settings or get_settings()
        return cls(settings.upload_dir, settings.max_file_size)

    @property
    def directory(self) -> Path:
        return self._directory

    def select(self, uploads: Sequence[UploadFile] | None) -> UploadFile | None:
        """Return the single uploaded proof, if any."""
        if not uploads:
            return None
        if len(uploads) > 1:
            raise ValidationError("Too many files. Only one file allowed per upload.", field="proof")
        return uploads[0]

    async def save(self, upload: UploadFile) -> ProofFile:
        """Validate ``upload`` and write it under the upload directory."""
        content_type = (upload.content_type or "").lower()
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                "Invalid file type. Only JPEG, PNG, GIF images and PDF files are allowed.",
                field="proof",
            )

        self._directory.mkdir(parents=True, exist_ok=True)
        target = self._directory / stored_filename(upload.filename or "proof")
        size = 0
        try:
            with target.open("wb") as handle:
                while chunk := await upload.read(_CHUNK_SIZE):
                    size += len(chunk)
                    if size > self._max_file_size:
                        raise ValidationError(
                            f"File too large. Maximum size allowed is {_size_label(self._max_file_size)}.",
                            field="proof",
                        )
                    await asyncio.to_thread(handle.write, chunk)
        except BaseException:
            # Partial files never outlive a failed or cancelled upload.
            target.unlink(missing_ok=True)
            raise

        logger.info("stored payment proof %s (%d bytes)", target.name, size)
        return ProofFile(
            original_name=upload.filename or target.name,
            content_type=content_type,
            path=str(target),
            size=size,
        )

    def discard(self, path: str | None) -> bool:
        """Remove a stored proof; returns whether a file was deleted."""
        if not path:
            return False
        target = Path(path)
        if not target.is_file():
            return False
        target.unlink()
        logger.info("removed payment proof %s", target.name)
        return True

    def exists(self, path: str | None) -> bool:
        return bool(path) and Path(path).is_file()
