"""
Exception hierarchy for structure import/export.

Three severities exist and callers must be able to tell them apart:
    - Structural errors abort an import before anything is written.
    - Row errors are collected and the batch continues.
    - Guard errors (active survey) are raised immediately.
"""

from typing import Optional


class ImexError(Exception):
    """Base class for all structimex errors."""


class ConfigError(ImexError):
    """Raised when settings cannot be loaded or have the wrong shape."""


class UnsupportedFileError(ImexError):
    """Raised when a tabular file has an extension we cannot read or write."""


class UnknownExportKindError(ImexError):
    """Raised when an export kind is not one of questions/relevances/quotas."""


class UnknownQuestionTypeError(ImexError):
    """Raised for question type codes absent from the registry."""


class SurveyNotFoundError(ImexError):
    """Raised when the requested survey does not exist in the store."""


class SurveyActiveError(ImexError):
    """Raised when structural changes are attempted on an active survey."""


class ImportStateError(ImexError):
    """Raised when an import step is called out of order."""


class StructuralError(ImexError):
    """
    File-level problem found during validation.

    Carries every message collected during the validation scan so the
    caller can show them as a single blocking report.
    """

    def __init__(self, messages):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class RowError(ImexError):
    """
    Problem confined to one input row.

    Args:
        message: Human readable reason
        row_number: 1-based spreadsheet row (header is row 1), if known
    """

    def __init__(self, message: str, row_number: Optional[int] = None):
        self.message = message
        self.row_number = row_number
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if self.row_number is None:
            return self.message
        return f"Row {self.row_number}: {self.message}"


class SaveError(RowError):
    """The store refused to save a record; message carries its validation errors."""


class MalformedCellError(RowError):
    """An attribute JSON cell could not be read, even after repair."""


__all__ = [
    "ImexError",
    "ConfigError",
    "UnsupportedFileError",
    "UnknownExportKindError",
    "UnknownQuestionTypeError",
    "SurveyNotFoundError",
    "SurveyActiveError",
    "ImportStateError",
    "StructuralError",
    "RowError",
    "SaveError",
    "MalformedCellError",
]
