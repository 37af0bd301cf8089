"""
Permissive parsing of attribute JSON cells.

Spreadsheet editors routinely mangle JSON: typographic quotes replace
straight ones, CSV export doubles every quote, people write single-quoted
or bare keys. parse_attribute_json tries a strict parse first, then a
sequence of repairs, and reports which of the three outcomes happened.

Expected malformed input never raises. The caller decides whether a
FAILED result is a warning or (in strict mode) a row error.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

_DOUBLE_QUOTES = {
    "“": '"',  # left double quotation mark
    "”": '"',  # right double quotation mark
    "„": '"',  # double low-9 quotation mark
    "‟": '"',  # double high-reversed-9 quotation mark
    "«": '"',
    "»": '"',
}
_SINGLE_QUOTES = {
    "‘": "'",
    "’": "'",
    "‚": "'",
    "‛": "'",
}

_SINGLE_QUOTED = re.compile(r"'((?:[^'\\]|\\.)*)'")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_\-]*)(\s*:)")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


class JsonParseStatus(Enum):
    OK = "ok"
    RECOVERED = "recovered"
    FAILED = "failed"


@dataclass
class JsonParseResult:
    """
    Outcome of parsing one attribute cell.

    Properties:
        status: OK, RECOVERED or FAILED
        value: Parsed object (empty dict when FAILED)
        repairs: Names of the repairs that were needed
        message: Parser error for FAILED results
    """

    status: JsonParseStatus
    value: Dict[str, Any] = field(default_factory=dict)
    repairs: List[str] = field(default_factory=list)
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is JsonParseStatus.OK

    @property
    def recovered(self) -> bool:
        return self.status is JsonParseStatus.RECOVERED

    @property
    def failed(self) -> bool:
        return self.status is JsonParseStatus.FAILED


def normalize_quotes(text: str) -> str:
    """Replace typographic quotes with their ASCII equivalents."""
    for fancy, plain in _DOUBLE_QUOTES.items():
        text = text.replace(fancy, plain)
    for fancy, plain in _SINGLE_QUOTES.items():
        text = text.replace(fancy, plain)
    return text


def _undouble_csv_quotes(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith('"') and stripped.endswith('"') and stripped[1:2] == "{":
        stripped = stripped[1:-1]
    if '""' in stripped:
        stripped = stripped.replace('""', '"')
    return stripped


def _single_to_double_quotes(text: str) -> str:
    return _SINGLE_QUOTED.sub(lambda m: json.dumps(m.group(1).replace("\\'", "'")), text)


def _quote_bare_keys(text: str) -> str:
    return _BARE_KEY.sub(r'\1"\2"\3', text)


def _strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", text)


def _close_braces(text: str) -> str:
    missing = text.count("{") - text.count("}")
    if missing <= 0:
        return text
    if text.count('"') % 2 == 1:
        text += '"'
    return text.rstrip().rstrip(",") + "}" * missing


_REPAIRS: List[Tuple[str, Callable[[str], str]]] = [
    ("smart_quotes", normalize_quotes),
    ("csv_doubled_quotes", _undouble_csv_quotes),
    ("single_quotes", _single_to_double_quotes),
    ("bare_keys", _quote_bare_keys),
    ("trailing_commas", _strip_trailing_commas),
    ("unclosed_object", _close_braces),
]


def _try_load(text: str) -> Tuple[Optional[Any], str]:
    try:
        return json.loads(text), ""
    except json.JSONDecodeError as e:
        return None, str(e)


def parse_attribute_json(text: Optional[str]) -> JsonParseResult:
    """
    Parse an attribute cell into a name -> value mapping.

    Args:
        text: Raw cell content; None and blank cells are an empty mapping

    Returns:
        JsonParseResult. Repairs are applied cumulatively and the first
        one that yields a JSON object wins.

    Example:
        >>> parse_attribute_json('{“hidden”: “1”}').value
        {'hidden': '1'}
    """
    if text is None or str(text).strip() == "":
        return JsonParseResult(JsonParseStatus.OK)
    text = str(text).strip()

    value, error = _try_load(text)
    if value is not None or error == "":
        if isinstance(value, dict):
            return JsonParseResult(JsonParseStatus.OK, value)
        return JsonParseResult(JsonParseStatus.FAILED, message="Attribute cell is not a JSON object")

    applied: List[str] = []
    candidate = text
    for name, repair in _REPAIRS:
        repaired = repair(candidate)
        if repaired == candidate:
            continue
        candidate = repaired
        applied.append(name)
        value, _ = _try_load(candidate)
        if isinstance(value, dict):
            return JsonParseResult(JsonParseStatus.RECOVERED, value, applied)

    return JsonParseResult(JsonParseStatus.FAILED, repairs=applied, message=error)


__all__ = [
    "JsonParseStatus",
    "JsonParseResult",
    "normalize_quotes",
    "parse_attribute_json",
]
