"""
Import/export run reports.

Nothing that goes wrong during an import disappears: row failures become
RowError entries on the result, soft conditions become warnings. Both
are enumerable after process() returns.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import RowError

logger = logging.getLogger(__name__)


class WarningCollector:
    """
    Collects warning messages, dropping duplicates while keeping order.

    Every new warning is also logged at WARNING level on the given logger.
    """

    def __init__(self, log: Optional[logging.Logger] = None):
        self._messages: List[str] = []
        self._log = log or logger

    def add(self, message: str) -> None:
        if message not in self._messages:
            self._messages.append(message)
            self._log.warning(message)

    @property
    def messages(self) -> List[str]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)


@dataclass
class ImportResult:
    """
    Summary handed back to the host after an import.

    Properties:
        processed_count: Rows replayed (success + failure)
        success_count: Rows applied
        failed_count: Rows skipped because of a RowError
        errors: Every error, structural or per row, as RowError
        warnings: Soft conditions (unknown attributes dropped, repaired JSON)
    """

    processed_count: int = 0
    success_count: int = 0
    failed_count: int = 0
    errors: List[RowError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def error_messages(self) -> List[str]:
        return [str(e) for e in self.errors]

    def summary(self) -> str:
        text = (
            f"{self.processed_count} rows processed, {self.success_count} imported, "
            f"{self.failed_count} failed"
        )
        if self.warnings:
            text += f", {len(self.warnings)} warnings"
        return text

    def to_dict(self) -> dict:
        return {
            "processed_count": self.processed_count,
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "errors": self.error_messages(),
            "warnings": list(self.warnings),
        }


__all__ = ["WarningCollector", "ImportResult"]
