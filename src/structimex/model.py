"""
Survey Structure Entities

Plain data records for everything the importer and exporter touch:
    - Survey (root, read only for this package)
    - QuestionGroup + per-language QuestionGroupL10n
    - Question (top level and sub-questions) + QuestionL10n
    - Answer + AnswerL10n
    - QuestionAttribute
    - Quota, QuotaLanguageSetting, QuotaMember

ARCHITECTURAL RULE:
    These records:
        - Know nothing about spreadsheets or JSON
        - Carry their own surrogate key field, named by PRIMARY_KEY
        - Validate their own fields (validate() returns messages)
        - Are matched across imports by business key, never by surrogate key
"""

import re
from dataclasses import dataclass, field
from typing import ClassVar, List, Optional

from .question_types import QuestionType

_QUESTION_TITLE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_SUBQUESTION_TITLE = re.compile(r"^[A-Za-z0-9_]+$")
_ANSWER_CODE = re.compile(r"^[A-Za-z0-9_]{1,5}$")

MANDATORY_VALUES = ("Y", "N", "S")
DEFAULT_THEME = "core"


@dataclass
class Survey:
    """
    Root of a survey structure.

    Only the fields the structure converter needs are modelled. A survey
    that is active (collecting responses) must not be structurally edited.

    Properties:
        sid: Survey id
        language: Base language code
        additional_languages: Other languages, in display order
        active: True while the survey collects responses
    """

    PRIMARY_KEY: ClassVar[str] = "sid"

    sid: Optional[int] = None
    language: str = "en"
    additional_languages: List[str] = field(default_factory=list)
    active: bool = False

    def languages(self) -> List[str]:
        """Base language first, then additional ones, without duplicates."""
        result: List[str] = []
        for code in [self.language] + list(self.additional_languages):
            if code and code not in result:
                result.append(code)
        return result

    def validate(self) -> List[str]:
        if not self.language:
            return ["language: Base language is required"]
        return []


@dataclass
class QuestionGroup:
    """
    A page/section of questions.

    The group's business key in spreadsheets is its gid; groups written
    by hand without a gid are matched by base-language name.
    """

    PRIMARY_KEY: ClassVar[str] = "gid"

    gid: Optional[int] = None
    sid: int = 0
    group_order: int = 0
    grelevance: str = ""

    def validate(self) -> List[str]:
        return []


@dataclass
class QuestionGroupL10n:
    PRIMARY_KEY: ClassVar[str] = "id"

    id: Optional[int] = None
    gid: int = 0
    language: str = ""
    group_name: str = ""
    description: str = ""

    def validate(self) -> List[str]:
        if not self.language:
            return ["language: Language is required"]
        return []


@dataclass
class Question:
    """
    A question or a sub-question.

    Sub-questions have parent_qid set and share the parent's group. For
    multi-flex types, scale_id 1 marks the column axis.

    Properties:
        title: Business key (question code)
        type: Single-character question type code
        mandatory: "Y", "N" or "S" (soft)
        same_script: Use the same script for all languages
        question_theme_name: Rendering theme, "core" by default
    """

    PRIMARY_KEY: ClassVar[str] = "qid"

    qid: Optional[int] = None
    sid: int = 0
    gid: int = 0
    parent_qid: int = 0
    type: str = "T"
    title: str = ""
    relevance: str = ""
    mandatory: str = "N"
    question_order: int = 0
    scale_id: int = 0
    same_script: bool = False
    question_theme_name: str = DEFAULT_THEME

    @property
    def is_subquestion(self) -> bool:
        return bool(self.parent_qid)

    @property
    def question_type(self) -> QuestionType:
        return QuestionType.from_code(self.type)

    def validate(self) -> List[str]:
        errors = []
        pattern = _SUBQUESTION_TITLE if self.is_subquestion else _QUESTION_TITLE
        if not self.title:
            errors.append("title: Question code may not be empty")
        elif not pattern.match(self.title):
            errors.append(f"title: Question code '{self.title}' may only contain letters, digits and underscores")
        if not QuestionType.is_known(self.type):
            errors.append(f"type: Unknown question type '{self.type}'")
        if self.mandatory not in MANDATORY_VALUES:
            errors.append(f"mandatory: Invalid value '{self.mandatory}'")
        if not self.gid:
            errors.append("gid: Question must belong to a group")
        return errors


@dataclass
class QuestionL10n:
    PRIMARY_KEY: ClassVar[str] = "id"

    id: Optional[int] = None
    qid: int = 0
    language: str = ""
    question: str = ""
    help: str = ""
    script: str = ""

    def validate(self) -> List[str]:
        if not self.language:
            return ["language: Language is required"]
        return []


@dataclass
class Answer:
    PRIMARY_KEY: ClassVar[str] = "aid"

    aid: Optional[int] = None
    qid: int = 0
    code: str = ""
    sort_order: int = 0
    scale_id: int = 0

    def validate(self) -> List[str]:
        if not _ANSWER_CODE.match(self.code or ""):
            return [f"code: Answer code '{self.code}' must be 1-5 letters, digits or underscores"]
        return []


@dataclass
class AnswerL10n:
    PRIMARY_KEY: ClassVar[str] = "id"

    id: Optional[int] = None
    aid: int = 0
    language: str = ""
    answer: str = ""

    def validate(self) -> List[str]:
        if not self.language:
            return ["language: Language is required"]
        return []


@dataclass
class QuestionAttribute:
    """
    One attribute value of a question.

    An empty language means the value is global (shared by all languages).
    """

    PRIMARY_KEY: ClassVar[str] = "qaid"

    qaid: Optional[int] = None
    qid: int = 0
    attribute: str = ""
    value: str = ""
    language: str = ""

    @property
    def is_global(self) -> bool:
        return not self.language

    def validate(self) -> List[str]:
        if not self.attribute:
            return ["attribute: Attribute name is required"]
        return []


@dataclass
class Quota:
    PRIMARY_KEY: ClassVar[str] = "id"

    id: Optional[int] = None
    sid: int = 0
    name: str = ""
    qlimit: int = 0
    active: int = 1
    autoload_url: int = 0

    def validate(self) -> List[str]:
        errors = []
        if not self.name:
            errors.append("name: Quota name is required")
        if self.qlimit < 0:
            errors.append("qlimit: Quota limit must not be negative")
        return errors


@dataclass
class QuotaLanguageSetting:
    PRIMARY_KEY: ClassVar[str] = "id"

    id: Optional[int] = None
    quota_id: int = 0
    language: str = ""
    message: str = ""
    url: str = ""
    url_description: str = ""

    def validate(self) -> List[str]:
        return []


@dataclass
class QuotaMember:
    PRIMARY_KEY: ClassVar[str] = "id"

    id: Optional[int] = None
    sid: int = 0
    quota_id: int = 0
    qid: int = 0
    code: str = ""

    def validate(self) -> List[str]:
        if not self.code:
            return ["code: Answer code is required"]
        return []


ENTITY_KINDS = (
    Survey,
    QuestionGroup,
    QuestionGroupL10n,
    Question,
    QuestionL10n,
    Answer,
    AnswerL10n,
    QuestionAttribute,
    Quota,
    QuotaLanguageSetting,
    QuotaMember,
)


__all__ = [
    "Survey",
    "QuestionGroup",
    "QuestionGroupL10n",
    "Question",
    "QuestionL10n",
    "Answer",
    "AnswerL10n",
    "QuestionAttribute",
    "Quota",
    "QuotaLanguageSetting",
    "QuotaMember",
    "ENTITY_KINDS",
    "MANDATORY_VALUES",
    "DEFAULT_THEME",
]
