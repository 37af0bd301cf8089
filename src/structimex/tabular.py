"""
Tabular file reader/writer (spreadsheet codec).

Two formats are supported:
    - .xlsx through openpyxl (multiple sheets, row styling)
    - .csv through the csv module (one sheet per file)

Every cell comes out of a reader as a string. Numbers typed into a
spreadsheet are turned back into their plain text form ("12", not
"12.0") so codes and flags survive a round trip through Excel.
"""

import csv
import datetime
import io
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Union

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill

from .errors import UnsupportedFileError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

XLSX_EXTENSIONS = (".xlsx", ".xlsm")
CSV_EXTENSIONS = (".csv",)


class RowStyle(Enum):
    """Visual style of an exported row. Ignored by CSV writers."""

    HEADER = "header"
    GROUP = "group"
    QUESTION = "question"
    SUBQUESTION = "subquestion"


_FONTS = {
    RowStyle.HEADER: Font(bold=True, color="0000FF"),
    RowStyle.GROUP: Font(color="FFFFFF"),
    RowStyle.QUESTION: Font(bold=True),
}
_FILLS = {
    RowStyle.GROUP: PatternFill(start_color="00B050", end_color="00B050", fill_type="solid"),
    RowStyle.QUESTION: PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid"),
}


def cell_to_text(value: Any) -> str:
    """Convert a spreadsheet cell value to the text we work with."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)


@dataclass
class Sheet:
    """One sheet: its name and its rows as lists of strings."""

    name: str
    rows: List[List[str]] = field(default_factory=list)


# ============================================================================
# Readers
# ============================================================================


class TabularReader:
    """Base reader. Use open_for_read() to get one."""

    def __init__(self, path: PathLike):
        self.path = Path(path)

    def sheets(self) -> Iterator[Sheet]:
        raise NotImplementedError

    def first_sheet(self) -> Sheet:
        for sheet in self.sheets():
            return sheet
        return Sheet(name="")

    def sheet(self, name: str) -> Optional[Sheet]:
        """Find a sheet by case-insensitive name."""
        for sheet in self.sheets():
            if sheet.name.lower() == name.lower():
                return sheet
        return None

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class XlsxReader(TabularReader):
    def __init__(self, path: PathLike):
        super().__init__(path)
        self._workbook = load_workbook(self.path, read_only=True, data_only=True)

    def sheets(self) -> Iterator[Sheet]:
        for worksheet in self._workbook.worksheets:
            rows = [
                [cell_to_text(value) for value in row]
                for row in worksheet.iter_rows(values_only=True)
            ]
            yield Sheet(name=worksheet.title, rows=rows)

    def close(self) -> None:
        self._workbook.close()


class CsvReader(TabularReader):
    """Reads a CSV file as a single sheet named after the file stem."""

    def sheets(self) -> Iterator[Sheet]:
        with open(self.path, newline="", encoding="utf-8-sig") as f:
            content = f.read()
        delimiter = _header_delimiter(content)
        rows = [list(row) for row in csv.reader(io.StringIO(content, newline=""), delimiter=delimiter)]
        yield Sheet(name=self.path.stem, rows=rows)


def _header_delimiter(content: str) -> str:
    # Header cells are plain names, so the most frequent separator wins
    header = content.split("\n", 1)[0]
    return max((",", ";", "\t"), key=header.count)


def open_for_read(path: PathLike) -> TabularReader:
    """
    Open a tabular file for reading, choosing the codec by extension.

    Raises:
        UnsupportedFileError: For extensions other than .xlsx/.xlsm/.csv
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in XLSX_EXTENSIONS:
        return XlsxReader(path)
    if suffix in CSV_EXTENSIONS:
        if not path.exists():
            raise FileNotFoundError(str(path))
        return CsvReader(path)
    raise UnsupportedFileError(f"invalid extension '{suffix.lstrip('.')}'")


# ============================================================================
# Writers
# ============================================================================


class TabularWriter:
    """Base writer. Use open_for_write() to get one."""

    def __init__(self, path: PathLike, sheet_name: str):
        self.path = Path(path)
        self.sheet_name = sheet_name
        self.rows_written = 0

    def add_row(self, values: Sequence[Any], style: Optional[RowStyle] = None) -> None:
        raise NotImplementedError

    def add_rows(self, rows: Sequence[Sequence[Any]], style: Optional[RowStyle] = None) -> None:
        for values in rows:
            self.add_row(values, style)

    def add_sheet(self, name: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class XlsxWriter(TabularWriter):
    def __init__(self, path: PathLike, sheet_name: str):
        super().__init__(path, sheet_name)
        self._workbook = Workbook()
        self._worksheet = self._workbook.active
        self._worksheet.title = sheet_name

    def add_row(self, values, style=None):
        self._worksheet.append([cell_to_text(v) for v in values])
        row_index = self._worksheet.max_row
        for cell in self._worksheet[row_index]:
            # Expressions starting with "=" are text, not formulas
            if cell.data_type == "f":
                cell.data_type = "s"
            if style in _FONTS:
                cell.font = _FONTS[style]
            if style in _FILLS:
                cell.fill = _FILLS[style]
        self.rows_written += 1

    def add_sheet(self, name):
        self._worksheet = self._workbook.create_sheet(title=name)

    def close(self):
        self._workbook.save(self.path)
        logger.debug("Wrote %s (%d rows)", self.path, self.rows_written)


class CsvWriter(TabularWriter):
    """
    Writes CSV. The first sheet goes to the requested path; each further
    sheet goes to a sibling file named "{stem}.{sheet}.csv".
    """

    def __init__(self, path: PathLike, sheet_name: str):
        super().__init__(path, sheet_name)
        self.extra_paths: List[Path] = []
        self._file = open(self.path, "w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file)

    def add_row(self, values, style=None):
        self._writer.writerow([cell_to_text(v) for v in values])
        self.rows_written += 1

    def add_sheet(self, name):
        self._file.close()
        sibling = self.path.with_name(f"{self.path.stem}.{name}.csv")
        self.extra_paths.append(sibling)
        self._file = open(sibling, "w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file)

    def close(self):
        if not self._file.closed:
            self._file.close()
        logger.debug("Wrote %s (%d rows)", self.path, self.rows_written)


def open_for_write(path: PathLike, sheet_name: str = "Sheet1") -> TabularWriter:
    """
    Open a tabular file for writing, choosing the codec by extension.

    Raises:
        UnsupportedFileError: For extensions other than .xlsx/.xlsm/.csv
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in XLSX_EXTENSIONS:
        return XlsxWriter(path, sheet_name)
    if suffix in CSV_EXTENSIONS:
        return CsvWriter(path, sheet_name)
    raise UnsupportedFileError(f"invalid extension '{suffix.lstrip('.')}'")


__all__ = [
    "RowStyle",
    "Sheet",
    "TabularReader",
    "TabularWriter",
    "XlsxReader",
    "CsvReader",
    "XlsxWriter",
    "CsvWriter",
    "cell_to_text",
    "open_for_read",
    "open_for_write",
]
