"""
Question type registry.

Each question type is identified by a single character code. The code
selects which attribute schema applies and whether the question owns
sub-questions, answers, or both.

Multi-flex matrix types (':' and ';') store their column axis as a second
scale of sub-questions instead of answers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from .errors import UnknownQuestionTypeError


class QuestionType(Enum):
    """Single-character question type codes."""

    LONG_FREE_TEXT = "T"
    LIST_RADIO = "L"
    LIST_FLEXIBLE = "Z"
    LIST_WITH_COMMENT = "O"
    MULTIPLE_CHOICE = "M"
    ARRAY = "F"
    MULTIPLE_SHORT_TEXT = "Q"
    MULTIPLE_NUMERICAL = "K"
    NUMERICAL = "N"
    TEXT_DISPLAY = "X"
    MULTIPLE_CHOICE_WITH_COMMENTS = "P"
    SHORT_FREE_TEXT = "S"
    EQUATION = "*"
    LIST_DROPDOWN = "!"
    YES_NO = "Y"
    GENDER = "G"
    ARRAY_DUAL_SCALE = "1"
    FIVE_POINT_CHOICE = "5"
    DATE = "D"
    ARRAY_FIVE_POINT = "A"
    ARRAY_TEN_POINT = "B"
    ARRAY_YES_UNCERTAIN_NO = "C"
    ARRAY_INCREASE_SAME_DECREASE = "E"
    ARRAY_BY_COLUMN = "H"
    LANGUAGE_SWITCH = "I"
    RANKING = "R"
    HUGE_FREE_TEXT = "U"
    FILE_UPLOAD = "|"
    ARRAY_NUMBERS = ":"
    ARRAY_TEXTS = ";"

    @classmethod
    def from_code(cls, code: str) -> "QuestionType":
        """
        Look up a type by its code.

        Raises:
            UnknownQuestionTypeError: If the code is not registered
        """
        try:
            return cls(code)
        except ValueError:
            raise UnknownQuestionTypeError(f"Unknown question type '{code}'") from None

    @classmethod
    def is_known(cls, code: str) -> bool:
        return code in _CODES

    @property
    def display_name(self) -> str:
        return _TYPE_INFO[self].name

    @property
    def has_subquestions(self) -> bool:
        return _TYPE_INFO[self].subquestions

    @property
    def has_answers(self) -> bool:
        return _TYPE_INFO[self].answers

    @property
    def is_multiflex(self) -> bool:
        return self in (QuestionType.ARRAY_NUMBERS, QuestionType.ARRAY_TEXTS)


@dataclass(frozen=True)
class _TypeInfo:
    name: str
    subquestions: bool = False
    answers: bool = False


_TYPE_INFO: Dict[QuestionType, _TypeInfo] = {
    QuestionType.LONG_FREE_TEXT: _TypeInfo("Long free text"),
    QuestionType.LIST_RADIO: _TypeInfo("Radio list", answers=True),
    QuestionType.LIST_FLEXIBLE: _TypeInfo("Flexible list", answers=True),
    QuestionType.LIST_WITH_COMMENT: _TypeInfo("Radio list with comment", answers=True),
    QuestionType.MULTIPLE_CHOICE: _TypeInfo("Multiple choice", subquestions=True),
    QuestionType.ARRAY: _TypeInfo("Array", subquestions=True, answers=True),
    QuestionType.MULTIPLE_SHORT_TEXT: _TypeInfo("Multiple short text", subquestions=True),
    QuestionType.MULTIPLE_NUMERICAL: _TypeInfo("Multiple numerical input", subquestions=True),
    QuestionType.NUMERICAL: _TypeInfo("Numerical input"),
    QuestionType.TEXT_DISPLAY: _TypeInfo("Text display"),
    QuestionType.MULTIPLE_CHOICE_WITH_COMMENTS: _TypeInfo(
        "Multiple choice with comments", subquestions=True
    ),
    QuestionType.SHORT_FREE_TEXT: _TypeInfo("Short free text"),
    QuestionType.EQUATION: _TypeInfo("Equation"),
    QuestionType.LIST_DROPDOWN: _TypeInfo("Dropdown list", answers=True),
    QuestionType.YES_NO: _TypeInfo("Yes/No"),
    QuestionType.GENDER: _TypeInfo("Gender"),
    QuestionType.ARRAY_DUAL_SCALE: _TypeInfo("Array dual scale", subquestions=True, answers=True),
    QuestionType.FIVE_POINT_CHOICE: _TypeInfo("5 point choice"),
    QuestionType.DATE: _TypeInfo("Date/Time"),
    QuestionType.ARRAY_FIVE_POINT: _TypeInfo("Array (5 point choice)", subquestions=True),
    QuestionType.ARRAY_TEN_POINT: _TypeInfo("Array (10 point choice)", subquestions=True),
    QuestionType.ARRAY_YES_UNCERTAIN_NO: _TypeInfo("Array (Yes/Uncertain/No)", subquestions=True),
    QuestionType.ARRAY_INCREASE_SAME_DECREASE: _TypeInfo(
        "Array (Increase/Same/Decrease)", subquestions=True
    ),
    QuestionType.ARRAY_BY_COLUMN: _TypeInfo("Array by column", subquestions=True, answers=True),
    QuestionType.LANGUAGE_SWITCH: _TypeInfo("Language switch"),
    QuestionType.RANKING: _TypeInfo("Ranking", answers=True),
    QuestionType.HUGE_FREE_TEXT: _TypeInfo("Huge free text"),
    QuestionType.FILE_UPLOAD: _TypeInfo("File upload"),
    QuestionType.ARRAY_NUMBERS: _TypeInfo("Array (Numbers)", subquestions=True),
    QuestionType.ARRAY_TEXTS: _TypeInfo("Array (Texts)", subquestions=True),
}

_CODES = frozenset(t.value for t in QuestionType)


def all_question_types() -> List[QuestionType]:
    """Every registered type, in declaration order."""
    return list(QuestionType)


__all__ = ["QuestionType", "all_question_types"]
