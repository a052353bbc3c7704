"""Exceptions raised by the import pipeline. Row-level data problems are ImportRowError records, not exceptions."""

from __future__ import annotations

from datetime import date as Date
from typing import Optional

from .models import ImportResult


class WodlogError(Exception):
    """Base class for wodlog errors."""


class InputReadError(WodlogError):
    """The export could not be read or decoded at all."""


class ImportCommitError(WodlogError):
    """A write failed during confirm; the failing session was rolled back.

    `result` counts what was committed before the failure.
    """

    def __init__(self, message: str, date: Optional[Date] = None, result: Optional[ImportResult] = None):
        super().__init__(message)
        self.date = date
        self.result = result or ImportResult()
