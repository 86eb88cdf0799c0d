"""
Upload validation gate.

Pure checks on file metadata, evaluated before any storage or network
access. Rules run in order and the first failure wins:

  1. mime type must be on the configured allow-list
  2. the file must not be empty
  3. byte size must not exceed the configured ceiling

Batches additionally cap the number of files per submission.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from docguard.core.config import settings

INVALID_TYPE_MESSAGE = "Invalid file type. Please upload PDF, JPG, or PNG files."
EMPTY_FILE_MESSAGE = "File is empty."


@dataclass(frozen=True)
class FileCandidate:
    filename: str
    content_type: str
    size: int


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: str) -> "ValidationResult":
        return cls(accepted=False, reason=reason)


@dataclass
class BatchValidationResult:
    accepted: bool
    reason: str | None = None
    total: int = 0
    # index -> rejection reason, for files that failed individually
    rejected_files: dict[int, str] = field(default_factory=dict)

    @property
    def accepted_indexes(self) -> list[int]:
        return [i for i in range(self.total) if i not in self.rejected_files]


def _max_size_label(max_bytes: int) -> str:
    return f"{max_bytes // (1024 * 1024)}MB"


def validate_file(
    content_type: str | None,
    size: int,
    filename: str = "",
    *,
    allowed_types: Iterable[str] | None = None,
    max_size: int | None = None,
) -> ValidationResult:
    """
    Check one file against the upload rules.
    """
    allowed = {t.lower() for t in (allowed_types or settings.allowed_file_types_list)}
    ceiling = max_size if max_size is not None else settings.MAX_FILE_SIZE_BYTES

    if (content_type or "").strip().lower() not in allowed:
        return ValidationResult.reject(INVALID_TYPE_MESSAGE)
    if size <= 0:
        return ValidationResult.reject(EMPTY_FILE_MESSAGE)
    if size > ceiling:
        return ValidationResult.reject(
            f"File too large. Maximum size is {_max_size_label(ceiling)}."
        )
    return ValidationResult.ok()


def validate_batch(
    files: Sequence[FileCandidate],
    *,
    max_batch_size: int | None = None,
    allowed_types: Iterable[str] | None = None,
    max_size: int | None = None,
) -> BatchValidationResult:
    """
    Check a batch submission. An oversized batch is rejected as a whole;
    otherwise each file is checked and rejections are reported per index
    without affecting accepted siblings.
    """
    cap = max_batch_size if max_batch_size is not None else settings.MAX_BATCH_SIZE
    if len(files) > cap:
        return BatchValidationResult(
            accepted=False,
            reason=f"Too many files. Maximum {cap} files allowed per batch.",
            total=len(files),
        )
    if not files:
        return BatchValidationResult(accepted=False, reason="No files provided.", total=0)

    allowed = list(allowed_types) if allowed_types is not None else None
    rejected: dict[int, str] = {}
    for index, candidate in enumerate(files):
        result = validate_file(
            candidate.content_type,
            candidate.size,
            candidate.filename,
            allowed_types=allowed,
            max_size=max_size,
        )
        if not result.accepted:
            rejected[index] = f"{candidate.filename}: {result.reason}"

    return BatchValidationResult(accepted=True, rejected_files=rejected, total=len(files))
