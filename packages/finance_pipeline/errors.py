"""Error taxonomy for the ingestion pipeline.

- ``ParseError``: the input as a whole cannot be read (empty file, no header,
  malformed JSON). Aborts an import; nothing is merged.
- ``FormatError``: a single field (date or amount) cannot be interpreted.
  Raised by the field parsers and absorbed per row by the normalizer, which
  records the problem on the row instead of failing the file.
- ``MergeConflictImpossible``: reserved. Merges are append-only and resolve an
  id collision by dropping the incoming record, so this is never raised.
- ``StorageError``: the key-value backend failed to read or write a slot.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all ``finance_pipeline`` errors."""


class ParseError(PipelineError):
    def __init__(self, message: str, *, filename: str | None = None) -> None:
        self.filename = filename
        prefix = f"{filename}: " if filename else ""
        super().__init__(f"{prefix}{message}")


class FormatError(PipelineError, ValueError):
    def __init__(self, field: str, value: object, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"invalid {field} {value!r}: {reason}")


class MergeConflictImpossible(PipelineError):
    pass


class StorageError(PipelineError):
    def __init__(self, message: str, *, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


__all__ = [
    "PipelineError",
    "ParseError",
    "FormatError",
    "MergeConflictImpossible",
    "StorageError",
]
