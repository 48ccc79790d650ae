"""Exceptions raised by the submission checker.

Only run-level failures are exceptions. Problems with individual claim
lines are reported as remarks on the activity, never raised.
"""

from __future__ import annotations

from typing import Any


class CheckerError(Exception):
    """Base class for errors that abort a whole checker run."""


class MalformedDocument(CheckerError):
    """An uploaded document (claim XML or spreadsheet) could not be parsed."""


class MissingReferenceDataset(CheckerError):
    """A reference file or metadata document required by a checker is absent."""

    def __init__(self, checker: str, dataset: str, message: str | None = None):
        super().__init__(message or f"{checker}: required dataset '{dataset}' was not supplied")
        self.checker = checker
        self.dataset = dataset


class UnsupportedDocument(CheckerError):
    """The claim document is well formed but the checker cannot process it."""


class RunCancelled(CheckerError):
    """The run was superseded by a newer upload and its outcomes were discarded."""


class UnknownChecker(CheckerError):
    """No checker is registered under the requested name."""


class ConfigValidationError(CheckerError):
    """Raised when checker configuration overrides fail validation."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []
