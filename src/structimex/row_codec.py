"""
Row schema and column codec for the "questions" sheet.

Column layout (languages in survey order):

    type, subtype, code,
    value-{l}, help-{l}, script-{l}        (repeated per language)
    relevance, mandatory, same_script, theme, options,
    options-{l}                            (repeated per language)

Decoding turns one header-indexed row into a typed record (GroupRow,
QuestionRow, SubQuestionRow or AnswerRow). Encoding turns entities back
into an ordered list of cell strings.

ARCHITECTURAL RULE:
    Column placement of attributes is authoritative. A value read from
    "options" is global, a value read from "options-{l}" belongs to
    language l, whatever the classifier thinks. The classifier is only
    consulted to report contradictions.

    Export follows the same rule in reverse: an attribute is written to
    the column matching how it is stored (no language means "options"),
    and a disagreeing classifier only adds a warning.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .attributes import AttributeLanguageClassifier, AttributeSchema, normalize_value
from .errors import RowError
from .json_repair import JsonParseResult, parse_attribute_json
from .model import (
    DEFAULT_THEME,
    Answer,
    AnswerL10n,
    Question,
    QuestionAttribute,
    QuestionGroup,
    QuestionGroupL10n,
    QuestionL10n,
)

logger = logging.getLogger(__name__)

COL_TYPE = "type"
COL_SUBTYPE = "subtype"
COL_CODE = "code"
COL_RELEVANCE = "relevance"
COL_MANDATORY = "mandatory"
COL_SAME_SCRIPT = "same_script"
COL_THEME = "theme"
COL_OPTIONS = "options"

PREFIX_VALUE = "value"
PREFIX_HELP = "help"
PREFIX_SCRIPT = "script"
PREFIX_OPTIONS = "options"

THEME_ATTRIBUTE = "question_template"

_TRUE_VALUES = ("1", "y", "yes", "true")


class RowKind(Enum):
    """Entity kind of a row, keyed by its canonical type cell."""

    GROUP = "G"
    QUESTION = "Q"
    SUBQUESTION = "sq"
    ANSWER = "a"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["RowKind"]:
        """Case-insensitive lookup; None for anything unrecognized."""
        if value is None:
            return None
        return _KINDS_BY_LOWER.get(str(value).strip().lower())


_KINDS_BY_LOWER = {kind.value.lower(): kind for kind in RowKind}


def language_column(prefix: str, language: str) -> str:
    return f"{prefix}-{language}"


class ColumnLayout:
    """
    Column order for a given list of survey languages.

    Args:
        languages: Language codes, base language first
    """

    def __init__(self, languages: Sequence[str]):
        self.languages = list(languages)

    def header(self) -> List[str]:
        columns = [COL_TYPE, COL_SUBTYPE, COL_CODE]
        for language in self.languages:
            columns += [
                language_column(PREFIX_VALUE, language),
                language_column(PREFIX_HELP, language),
                language_column(PREFIX_SCRIPT, language),
            ]
        columns += [COL_RELEVANCE, COL_MANDATORY, COL_SAME_SCRIPT, COL_THEME, COL_OPTIONS]
        columns += [language_column(PREFIX_OPTIONS, language) for language in self.languages]
        return columns

    def to_cells(self, values: Mapping[str, Any]) -> List[str]:
        """Order a column -> value map by the header; missing cells are ''."""
        return ["" if values.get(c) is None else str(values.get(c)) for c in self.header()]

    @staticmethod
    def languages_from_header(header: Iterable[str]) -> List[str]:
        """
        Derive languages from "value-{l}" column names.

        Language codes are lower-cased; order of first appearance is kept.
        """
        languages: List[str] = []
        marker = PREFIX_VALUE + "-"
        for column in header:
            name = str(column or "").strip()
            if name.lower().startswith(marker):
                language = name[len(marker):].strip().lower()
                if language and language not in languages:
                    languages.append(language)
        return languages


# ============================================================================
# Decoded records
# ============================================================================


@dataclass
class LocalizedText:
    value: str = ""
    help: str = ""
    script: str = ""


@dataclass
class DecodedAttribute:
    """
    One attribute read from a row.

    Properties:
        name: Attribute name
        value: Normalized value; None means "leave untouched"
        language: "" for global, otherwise the language column it came from
    """

    name: str
    value: Any
    language: str = ""

    @property
    def is_global(self) -> bool:
        return not self.language


@dataclass
class DecodedRow:
    """Fields shared by every row kind."""

    row_number: int = 0
    code: str = ""
    texts: Dict[str, LocalizedText] = field(default_factory=dict)
    relevance: str = ""

    kind: RowKind = RowKind.GROUP

    def text(self, language: str) -> LocalizedText:
        return self.texts.get(language, LocalizedText())


@dataclass
class GroupRow(DecodedRow):
    kind: RowKind = RowKind.GROUP


@dataclass
class QuestionRow(DecodedRow):
    kind: RowKind = RowKind.QUESTION
    question_type: str = ""
    mandatory: str = ""
    same_script: bool = False
    theme: str = ""
    attributes: List[DecodedAttribute] = field(default_factory=list)
    cell_issues: Dict[str, JsonParseResult] = field(default_factory=dict)


@dataclass
class SubQuestionRow(QuestionRow):
    kind: RowKind = RowKind.SUBQUESTION


@dataclass
class AnswerRow(DecodedRow):
    kind: RowKind = RowKind.ANSWER


# ============================================================================
# Decoding
# ============================================================================


def _lookup(row: Mapping[str, Any], column: str) -> Any:
    # Headers are lower-cased when indexed; language codes may not be
    if column in row:
        return row[column]
    return row.get(column.lower())


def _cell(row: Mapping[str, Any], column: str) -> str:
    value = _lookup(row, column)
    return "" if value is None else str(value)


def decode_attributes(
    row: Mapping[str, Any], languages: Sequence[str]
) -> Tuple[List[DecodedAttribute], Dict[str, JsonParseResult]]:
    """
    Read the options columns of a row.

    Returns:
        (attributes, issues) where issues maps column name to the parse
        result of every cell that was not clean JSON
    """
    attributes: List[DecodedAttribute] = []
    issues: Dict[str, JsonParseResult] = {}
    columns = [(COL_OPTIONS, "")] + [
        (language_column(PREFIX_OPTIONS, language), language) for language in languages
    ]
    for column, language in columns:
        result = parse_attribute_json(_lookup(row, column))
        if not result.ok:
            issues[column] = result
        for name, value in result.value.items():
            attributes.append(DecodedAttribute(str(name), normalize_value(value), language))
    return attributes, issues


def decode_row(row: Mapping[str, Any], languages: Sequence[str], row_number: int = 0) -> DecodedRow:
    """
    Decode one header-indexed row.

    Args:
        row: Column name -> cell text
        languages: Survey languages present in the file
        row_number: Spreadsheet row number, used in error messages

    Raises:
        RowError: If the type cell is not a known row kind
    """
    kind = RowKind.parse(row.get(COL_TYPE))
    if kind is None:
        raise RowError(f"Invalid row type '{_cell(row, COL_TYPE)}'", row_number)

    texts = {
        language: LocalizedText(
            value=_cell(row, language_column(PREFIX_VALUE, language)),
            help=_cell(row, language_column(PREFIX_HELP, language)),
            script=_cell(row, language_column(PREFIX_SCRIPT, language)),
        )
        for language in languages
    }
    common = dict(
        row_number=row_number,
        code=_cell(row, COL_CODE).strip(),
        texts=texts,
        relevance=_cell(row, COL_RELEVANCE),
    )

    if kind is RowKind.GROUP:
        return GroupRow(**common)
    if kind is RowKind.ANSWER:
        return AnswerRow(**common)

    attributes, issues = decode_attributes(row, languages)
    record_class = QuestionRow if kind is RowKind.QUESTION else SubQuestionRow
    return record_class(
        **common,
        question_type=_cell(row, COL_SUBTYPE).strip(),
        mandatory=_cell(row, COL_MANDATORY).strip().upper(),
        same_script=_cell(row, COL_SAME_SCRIPT).strip().lower() in _TRUE_VALUES,
        theme=_cell(row, COL_THEME).strip(),
        attributes=attributes,
        cell_issues=issues,
    )


def numbered_rows(rows: Sequence[Sequence[str]]) -> List[Tuple[int, Dict[str, str]]]:
    """
    Re-key raw rows by the first (header) row, keeping spreadsheet row numbers.

    The header is row 1 and its names are lower-cased. Cells beyond the
    header width are dropped, missing trailing cells become ''. Fully
    blank rows are discarded.
    """
    if not rows:
        return []
    header = [str(h).strip().lower() for h in rows[0]]
    indexed = []
    for row_number, raw in enumerate(rows[1:], start=2):
        if all(str(cell).strip() == "" for cell in raw):
            continue
        cells = list(raw) + [""] * (len(header) - len(raw))
        indexed.append((row_number, {name: cells[i] for i, name in enumerate(header) if name}))
    return indexed


# ============================================================================
# Encoding
# ============================================================================


WarningSink = Callable[[str], None]


class RowEncoder:
    """
    Encodes entities into "questions" sheet rows.

    Args:
        layout: Column layout (decides the languages written)
        schema: Used to drop invalid and default-valued attributes
        classifier: Used to report storage/classification contradictions
        warn: Optional callback receiving contradiction messages
    """

    def __init__(
        self,
        layout: ColumnLayout,
        schema: AttributeSchema,
        classifier: AttributeLanguageClassifier,
        warn: Optional[WarningSink] = None,
    ):
        self.layout = layout
        self.schema = schema
        self.classifier = classifier
        self._warn = warn or (lambda message: logger.warning(message))

    def encode_group(self, group: QuestionGroup, l10ns: Mapping[str, QuestionGroupL10n]) -> List[str]:
        values: Dict[str, Any] = {
            COL_TYPE: RowKind.GROUP.value,
            COL_CODE: group.gid,
            COL_RELEVANCE: group.grelevance,
        }
        for language in self.layout.languages:
            l10n = l10ns.get(language)
            if l10n is not None:
                values[language_column(PREFIX_VALUE, language)] = l10n.group_name
                values[language_column(PREFIX_HELP, language)] = l10n.description
        return self.layout.to_cells(values)

    def encode_question(
        self,
        question: Question,
        l10ns: Mapping[str, QuestionL10n],
        attributes: Iterable[QuestionAttribute],
    ) -> List[str]:
        """Encode a top-level question (Q) or scale-0 sub-question (sq) row."""
        kind = RowKind.SUBQUESTION if question.is_subquestion else RowKind.QUESTION
        values: Dict[str, Any] = {
            COL_TYPE: kind.value,
            COL_CODE: question.title,
            COL_RELEVANCE: question.relevance,
        }
        if kind is RowKind.QUESTION:
            values[COL_SUBTYPE] = question.type
            values[COL_MANDATORY] = question.mandatory
            values[COL_SAME_SCRIPT] = "1" if question.same_script else ""
            if question.question_theme_name and question.question_theme_name != DEFAULT_THEME:
                values[COL_THEME] = question.question_theme_name
        for language in self.layout.languages:
            l10n = l10ns.get(language)
            if l10n is not None:
                values[language_column(PREFIX_VALUE, language)] = l10n.question
                values[language_column(PREFIX_HELP, language)] = l10n.help
                values[language_column(PREFIX_SCRIPT, language)] = l10n.script
        values.update(self.encode_attributes(question, attributes))
        return self.layout.to_cells(values)

    def encode_answer(self, answer: Answer, l10ns: Mapping[str, AnswerL10n]) -> List[str]:
        values: Dict[str, Any] = {COL_TYPE: RowKind.ANSWER.value, COL_CODE: answer.code}
        for language in self.layout.languages:
            l10n = l10ns.get(language)
            if l10n is not None:
                values[language_column(PREFIX_VALUE, language)] = l10n.answer
        return self.layout.to_cells(values)

    def encode_column_subquestion(self, subquestion: Question, l10ns: Mapping[str, QuestionL10n]) -> List[str]:
        """Encode a multi-flex column (scale 1 sub-question) as an answer row."""
        values: Dict[str, Any] = {COL_TYPE: RowKind.ANSWER.value, COL_CODE: subquestion.title}
        for language in self.layout.languages:
            l10n = l10ns.get(language)
            if l10n is not None:
                values[language_column(PREFIX_VALUE, language)] = l10n.question
        return self.layout.to_cells(values)

    def encode_attributes(self, question: Question, attributes: Iterable[QuestionAttribute]) -> Dict[str, str]:
        """
        Build the options cells for a question.

        Attributes stay in the column matching how they are stored. Values
        that are invalid for the question's type or equal to the default
        are left out.
        """
        global_values: Dict[str, str] = {}
        per_language: Dict[str, Dict[str, str]] = {lang: {} for lang in self.layout.languages}
        for attribute in attributes:
            name = attribute.attribute
            if not self.schema.is_non_default(question.type, name, attribute.value):
                continue
            if attribute.is_global:
                if self.classifier.is_language_specific(name):
                    self._warn(
                        f"Question {question.title}: attribute '{name}' is stored globally "
                        f"but is language-specific"
                    )
                global_values[name] = attribute.value
            elif attribute.language in per_language:
                if self.classifier.is_known(name) and self.classifier.is_global(name):
                    self._warn(
                        f"Question {question.title}: attribute '{name}' is stored for "
                        f"language '{attribute.language}' but is global"
                    )
                per_language[attribute.language][name] = attribute.value

        cells = {COL_OPTIONS: encode_json(global_values)}
        for language, values in per_language.items():
            cells[language_column(PREFIX_OPTIONS, language)] = encode_json(values)
        return cells


def encode_json(values: Mapping[str, Any]) -> str:
    """Encode an attribute map; an empty map is an empty cell."""
    if not values:
        return ""
    return json.dumps(dict(values), ensure_ascii=False, sort_keys=True)


__all__ = [
    "RowKind",
    "ColumnLayout",
    "LocalizedText",
    "DecodedAttribute",
    "DecodedRow",
    "GroupRow",
    "QuestionRow",
    "SubQuestionRow",
    "AnswerRow",
    "RowEncoder",
    "decode_row",
    "decode_attributes",
    "numbered_rows",
    "encode_json",
    "language_column",
    "THEME_ATTRIBUTE",
]
