"""Exception types raised by the import / stock services.

Structural problems with an uploaded file are ``ValueError`` subclasses so the
routers can keep mapping them to HTTP 400 like any other bad input.  Row-level
problems are not exceptions: they are collected as records
(:class:`~stockroom.services.csv_import.RowValidationError`,
:class:`~stockroom.services.csv_import.RowApplyError`).
"""

from __future__ import annotations

from typing import Sequence


class ImportFormatError(ValueError):
    """The file cannot be turned into rows at all."""


class ParseError(ImportFormatError):
    """Empty input or undecodable bytes."""


class MissingColumnsError(ImportFormatError):
    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required columns: {', '.join(self.missing)}")


class DuplicateColumnsError(ImportFormatError):
    def __init__(self, field: str, columns: Sequence[str]):
        self.field = field
        self.columns = list(columns)
        super().__init__(
            f"Columns {self.columns!r} all map to '{field}'; keep only one of them"
        )


class ImportBlockedError(ValueError):
    """Apply was requested for a plan that still has validation errors."""

    def __init__(self, errors: Sequence[object]):
        self.errors = list(errors)
        super().__init__(
            f"Import blocked by {len(self.errors)} validation error(s); fix the file and re-upload"
        )


class ImportInProgressError(RuntimeError):
    def __init__(self, target: str, holder: str | None = None):
        self.target = target
        self.holder = holder
        super().__init__(f"Another import into '{target}' is still running")


class UnknownItemError(LookupError):
    def __init__(self, item_code: str):
        self.item_code = item_code
        super().__init__(f"Item '{item_code}' not found")
