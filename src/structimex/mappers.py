"""
Entity mappers: apply decoded rows to the entity store.

One mapper per row kind (group, question, sub-question, answer). Each
resolves the target entity by business key through the run's ImportIndex,
creates it if absent, updates it otherwise, then fans its localized text
out over the file's languages.

Parent resolution follows scan order: a question belongs to the most
recent group row, sub-questions and answers to the most recent question
row. There is no second pass. A group or question row that fails
leaves the rows below it without a parent.

ARCHITECTURAL RULE:
    Every lookup goes through ImportIndex, built once per run. Mappers
    register whatever they save so later rows see it. The store is only
    written to, never queried, while rows are applied.

    Records taken from the index are copied before they are changed and
    registered again only after the store accepts them. A refused save
    leaves the index holding the last saved state.

    Answer codes and sub-question codes of one question are separate key
    spaces: an array may use "1" both as a row and as an answer option.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .attributes import AttributeLanguageClassifier, AttributeSchema
from .config import SurveySettings
from .errors import MalformedCellError, RowError, SaveError
from .model import (
    DEFAULT_THEME,
    MANDATORY_VALUES,
    Answer,
    AnswerL10n,
    Question,
    QuestionAttribute,
    QuestionGroup,
    QuestionGroupL10n,
    QuestionL10n,
    Survey,
)
from .question_types import QuestionType
from .report import WarningCollector
from .row_codec import (
    THEME_ATTRIBUTE,
    AnswerRow,
    DecodedAttribute,
    DecodedRow,
    GroupRow,
    QuestionRow,
    RowKind,
    SubQuestionRow,
)
from .store import EntityStore

logger = logging.getLogger(__name__)

COLUMN_SCALE = 1
COLUMN_SUBQUESTION_TYPE = QuestionType.LONG_FREE_TEXT.value


# ============================================================================
# Lookup index
# ============================================================================


class ImportIndex:
    """
    Business-key lookup tables for one survey, built once per import run.

    Keys:
        groups_by_id: gid -> QuestionGroup
        groups_by_name: base-language group name -> QuestionGroup
        questions: title -> top-level Question
        subquestions: (parent_qid, scale_id, title) -> Question
        answers: (qid, scale_id, code) -> Answer
        group_l10n / question_l10n / answer_l10n: (id, language) -> record
        attributes: (qid, name, language) -> QuestionAttribute
    """

    def __init__(self, survey: Survey, base_language: str):
        self.survey = survey
        self.base_language = base_language
        self.groups_by_id: Dict[int, QuestionGroup] = {}
        self.groups_by_name: Dict[str, QuestionGroup] = {}
        self.questions: Dict[str, Question] = {}
        self.subquestions: Dict[Tuple[int, int, str], Question] = {}
        self.answers: Dict[Tuple[int, int, str], Answer] = {}
        self.group_l10n: Dict[Tuple[int, str], QuestionGroupL10n] = {}
        self.question_l10n: Dict[Tuple[int, str], QuestionL10n] = {}
        self.answer_l10n: Dict[Tuple[int, str], AnswerL10n] = {}
        self.attributes: Dict[Tuple[int, str, str], QuestionAttribute] = {}

    @classmethod
    def build(cls, store: EntityStore, survey: Survey, base_language: Optional[str] = None) -> "ImportIndex":
        """Load the survey's current structure from the store."""
        index = cls(survey, base_language or survey.language)
        sid = survey.sid

        for group in store.find_all(QuestionGroup, sid=sid):
            index.groups_by_id[group.gid] = group
        for l10n in store.find_all(QuestionGroupL10n):
            if l10n.gid in index.groups_by_id:
                index.add_group_l10n(l10n)

        qids: Set[int] = set()
        for question in store.find_all(Question, sid=sid):
            index.add_question(question)
            qids.add(question.qid)
        for l10n in store.find_all(QuestionL10n):
            if l10n.qid in qids:
                index.question_l10n[(l10n.qid, l10n.language)] = l10n
        for attribute in store.find_all(QuestionAttribute):
            if attribute.qid in qids:
                index.attributes[(attribute.qid, attribute.attribute, attribute.language)] = attribute

        aids: Set[int] = set()
        for answer in store.find_all(Answer):
            if answer.qid in qids:
                index.add_answer(answer)
                aids.add(answer.aid)
        for l10n in store.find_all(AnswerL10n):
            if l10n.aid in aids:
                index.answer_l10n[(l10n.aid, l10n.language)] = l10n

        logger.debug(
            "Indexed survey %s: %d groups, %d questions, %d answers, %d attributes",
            sid,
            len(index.groups_by_id),
            len(qids),
            len(aids),
            len(index.attributes),
        )
        return index

    # Registration ---------------------------------------------------------

    def add_group(self, group: QuestionGroup) -> None:
        self.groups_by_id[group.gid] = group
        for name, known in self.groups_by_name.items():
            if known.gid == group.gid:
                self.groups_by_name[name] = group

    def add_group_l10n(self, l10n: QuestionGroupL10n) -> None:
        previous = self.group_l10n.get((l10n.gid, l10n.language))
        self.group_l10n[(l10n.gid, l10n.language)] = l10n
        if l10n.language != self.base_language:
            return
        named = self.groups_by_name.get(previous.group_name) if previous is not None else None
        if named is not None and named.gid == l10n.gid:
            del self.groups_by_name[previous.group_name]
        if l10n.group_name:
            self.groups_by_name.setdefault(l10n.group_name, self.groups_by_id[l10n.gid])

    def add_question(self, question: Question) -> None:
        if question.parent_qid:
            self.subquestions[(question.parent_qid, question.scale_id, question.title)] = question
        else:
            self.questions[question.title] = question

    def add_answer(self, answer: Answer) -> None:
        self.answers[(answer.qid, answer.scale_id, answer.code)] = answer

    # Queries --------------------------------------------------------------

    def find_group(self, code: str, name: str) -> Optional[QuestionGroup]:
        """Match by gid first, then by base-language name."""
        if code.isdigit() and int(code) in self.groups_by_id:
            return self.groups_by_id[int(code)]
        if name:
            return self.groups_by_name.get(name)
        return None

    def group_name(self, gid: int) -> str:
        l10n = self.group_l10n.get((gid, self.base_language))
        return l10n.group_name if l10n else ""

    def questions_in_group(self, gid: int) -> List[Question]:
        return [q for q in self.questions.values() if q.gid == gid]

    def children_of(self, parent_qid: int, scale_id: int) -> List[Question]:
        return [
            q for (parent, scale, _), q in self.subquestions.items() if parent == parent_qid and scale == scale_id
        ]

    def answers_of(self, qid: int, scale_id: int) -> List[Answer]:
        return [a for (owner, scale, _), a in self.answers.items() if owner == qid and scale == scale_id]

    def attributes_named(self, qid: int, name: str) -> List[QuestionAttribute]:
        return [a for (owner, attr, _), a in self.attributes.items() if owner == qid and attr == name]


# ============================================================================
# Run context
# ============================================================================


@dataclass
class PlannedKeys:
    """
    Business keys mentioned anywhere in the file.

    Used to place new entities after pre-existing siblings that the file
    does not mention.
    """

    group_ids: Set[int] = field(default_factory=set)
    group_names: Set[str] = field(default_factory=set)
    question_titles: Set[str] = field(default_factory=set)
    children: Set[Tuple[str, RowKind, str]] = field(default_factory=set)

    @classmethod
    def from_rows(cls, rows: Iterable[DecodedRow], base_language: str) -> "PlannedKeys":
        planned = cls()
        parent_title = ""
        for row in rows:
            if row.kind is RowKind.GROUP:
                if row.code.isdigit():
                    planned.group_ids.add(int(row.code))
                planned.group_names.add(row.text(base_language).value)
            elif row.kind is RowKind.QUESTION:
                parent_title = row.code
                planned.question_titles.add(row.code)
            else:
                planned.children.add((parent_title, row.kind, row.code))
        return planned


class ImportContext:
    """
    Mutable state of one import run: current parents, keys seen so far,
    order counters and the collaborators every mapper needs.
    """

    def __init__(
        self,
        store: EntityStore,
        index: ImportIndex,
        languages: Sequence[str],
        schema: AttributeSchema,
        classifier: AttributeLanguageClassifier,
        settings: SurveySettings,
        warnings: Optional[WarningCollector] = None,
        planned: Optional[PlannedKeys] = None,
    ):
        self.store = store
        self.index = index
        self.languages = list(languages)
        self.schema = schema
        self.classifier = classifier
        self.settings = settings
        self.warnings = warnings if warnings is not None else WarningCollector()
        self.planned = planned or PlannedKeys()

        self.current_group: Optional[QuestionGroup] = None
        self.current_question: Optional[Question] = None
        self.seen_groups: Set[int] = set()
        self.seen_questions: Set[str] = set()
        self.seen_children: Set[Tuple[int, int, str]] = set()
        self.seen_answers: Set[Tuple[int, str]] = set()
        self._order_counters: Dict[tuple, int] = {}

    @property
    def survey(self) -> Survey:
        return self.index.survey

    def next_order(self, scope: tuple, start: Callable[[], int]) -> int:
        """
        Next order index in a scope.

        The first call in a scope asks start() for the highest order already
        taken by siblings the file leaves alone.
        """
        if scope not in self._order_counters:
            self._order_counters[scope] = start()
        self._order_counters[scope] += 1
        return self._order_counters[scope]

    def save(self, record, row: DecodedRow) -> None:
        """
        Save through the store, converting a refusal into a SaveError.
        """
        if not self.store.save(record):
            reasons = "; ".join(self.store.last_errors) or "unknown reason"
            raise SaveError(f"Unable to save {type(record).__name__}: {reasons}", row.row_number)


# ============================================================================
# Attributes
# ============================================================================


class AttributeWriter:
    """
    Validates decoded attributes and upserts them for a question.

    Semantics:
        - A None value leaves the stored value untouched
        - "" clears the stored value
        - Unknown names are dropped with a warning, or stored verbatim
          when import_unknown_attributes is set
        - Invalid values of known names fail the whole row
        - Writing a global value removes per-language values of the same
          name, and vice versa
    """

    def __init__(self, context: ImportContext):
        self.context = context

    def prepare(self, question_type: str, row: QuestionRow) -> List[DecodedAttribute]:
        """
        Filter and validate a row's attributes without writing anything.

        Raises:
            RowError: If a known attribute has an invalid value
        """
        ctx = self.context
        prefix = f"Row {row.row_number}, question {row.code}"
        per_language_names = {a.name for a in row.attributes if a.language}
        accepted: List[DecodedAttribute] = []

        for attribute in row.attributes:
            name = attribute.name
            if attribute.value is None or name == THEME_ATTRIBUTE:
                continue
            if attribute.language and attribute.language not in ctx.languages:
                continue
            if attribute.is_global and name in per_language_names:
                ctx.warnings.add(
                    f"{prefix}: attribute '{name}' given both globally and per language; "
                    f"the per-language values win"
                )
                continue

            if not ctx.schema.is_valid(question_type, name):
                if not ctx.settings.import_unknown_attributes:
                    ctx.warnings.add(
                        f"{prefix}: unknown attribute '{name}' for question type '{question_type}' ignored"
                    )
                    continue
                value = attribute.value
                if isinstance(value, (list, dict)):
                    value = json.dumps(value, ensure_ascii=False, sort_keys=True)
                accepted.append(DecodedAttribute(name, value, attribute.language))
                continue

            if attribute.value != "" and not ctx.schema.validate(question_type, name, attribute.value):
                raise RowError(
                    f"Invalid value '{attribute.value}' for attribute '{name}' of question {row.code}",
                    row.row_number,
                )
            self._check_placement(attribute, prefix)
            accepted.append(attribute)
        return accepted

    def _check_placement(self, attribute: DecodedAttribute, prefix: str) -> None:
        classifier = self.context.classifier
        if attribute.language and classifier.is_known(attribute.name) and classifier.is_global(attribute.name):
            self.context.warnings.add(
                f"{prefix}: global attribute '{attribute.name}' found in options-{attribute.language}; "
                f"stored for that language"
            )
        elif attribute.is_global and classifier.is_language_specific(attribute.name):
            self.context.warnings.add(
                f"{prefix}: language-specific attribute '{attribute.name}' found in options; stored globally"
            )

    def write(self, question: Question, attributes: Iterable[DecodedAttribute], row: DecodedRow) -> int:
        """Upsert prepared attributes. Returns how many records changed."""
        ctx = self.context
        changed = 0
        for attribute in attributes:
            changed += self._remove_other_storage(question.qid, attribute)
            key = (question.qid, attribute.name, attribute.language)
            record = _copy(ctx.index.attributes.get(key))
            value = str(attribute.value)
            if record is not None and record.value == value:
                continue
            if record is None:
                record = QuestionAttribute(
                    qid=question.qid, attribute=attribute.name, language=attribute.language
                )
            record.value = value
            ctx.save(record, row)
            ctx.index.attributes[key] = record
            changed += 1
        return changed

    def _remove_other_storage(self, qid: int, attribute: DecodedAttribute) -> int:
        ctx = self.context
        removed = 0
        for record in ctx.index.attributes_named(qid, attribute.name):
            if bool(record.language) == bool(attribute.language):
                continue
            ctx.store.delete_all(QuestionAttribute, qaid=record.qaid)
            del ctx.index.attributes[(qid, record.attribute, record.language)]
            removed += 1
        return removed


# ============================================================================
# Mappers
# ============================================================================


class EntityMapper:
    """Shared plumbing of the row mappers."""

    kind: RowKind

    def __init__(self, context: ImportContext):
        self.context = context

    @property
    def index(self) -> ImportIndex:
        return self.context.index

    def apply_row(self, row: DecodedRow):
        raise NotImplementedError

    def _require_code(self, row: DecodedRow, what: str) -> str:
        if not row.code:
            raise RowError(f"{what} code is empty", row.row_number)
        return row.code

    def _report_cells(self, row: QuestionRow) -> None:
        ctx = self.context
        for column, result in row.cell_issues.items():
            if result.recovered:
                ctx.warnings.add(
                    f"Row {row.row_number}: repaired malformed JSON in column '{column}' "
                    f"({', '.join(result.repairs)})"
                )
            elif ctx.settings.strict:
                raise MalformedCellError(f"Unreadable JSON in column '{column}': {result.message}", row.row_number)
            else:
                ctx.warnings.add(
                    f"Row {row.row_number}: ignored unreadable JSON in column '{column}': {result.message}"
                )


class GroupMapper(EntityMapper):
    kind = RowKind.GROUP

    def find(self, code: str, name: str = "") -> Optional[QuestionGroup]:
        return self.index.find_group(code, name)

    def apply_row(self, row: GroupRow) -> QuestionGroup:
        ctx = self.context
        ctx.current_group = None
        ctx.current_question = None
        name = row.text(self.index.base_language).value
        if not row.code and not name:
            raise RowError("Group has neither a code nor a name", row.row_number)

        group = self.find(row.code, name)
        if group is not None and group.gid in ctx.seen_groups:
            raise RowError(f"Duplicate group '{row.code or name}' in import file", row.row_number)
        group = _copy(group) or QuestionGroup(sid=ctx.survey.sid)
        group.grelevance = row.relevance
        group.group_order = ctx.next_order(("group",), self._start_order)
        ctx.save(group, row)
        self.index.add_group(group)

        for language in ctx.languages:
            text = row.text(language)
            l10n = _copy(self.index.group_l10n.get((group.gid, language))) or QuestionGroupL10n(
                gid=group.gid, language=language
            )
            l10n.group_name = text.value
            l10n.description = text.help
            ctx.save(l10n, row)
            self.index.add_group_l10n(l10n)

        ctx.seen_groups.add(group.gid)
        ctx.current_group = group
        return group

    def _start_order(self) -> int:
        planned = self.context.planned
        untouched = [
            g.group_order
            for g in self.index.groups_by_id.values()
            if g.gid not in planned.group_ids and self.index.group_name(g.gid) not in planned.group_names
        ]
        return max(untouched, default=0)


class QuestionMapper(EntityMapper):
    kind = RowKind.QUESTION

    def find(self, title: str) -> Optional[Question]:
        return self.index.questions.get(title)

    def apply_row(self, row: QuestionRow) -> Question:
        ctx = self.context
        group = ctx.current_group
        ctx.current_question = None
        code = self._require_code(row, "Question")
        if group is None:
            raise RowError(f"Question '{code}' has no parent group", row.row_number)
        if code in ctx.seen_questions:
            raise RowError(f"Duplicate question code '{code}' in import file", row.row_number)
        self._report_cells(row)

        question = self.find(code)
        question_type = row.question_type or (question.type if question else "")
        if not QuestionType.is_known(question_type):
            raise RowError(f"Unknown question type '{question_type}' for question {code}", row.row_number)

        writer = AttributeWriter(ctx)
        attributes = writer.prepare(question_type, row)

        question = _copy(question) or Question(sid=ctx.survey.sid, title=code)
        question.gid = group.gid
        question.parent_qid = 0
        question.scale_id = 0
        question.type = question_type
        question.relevance = row.relevance
        question.mandatory = row.mandatory if row.mandatory in MANDATORY_VALUES else "Y"
        question.same_script = row.same_script
        question.question_theme_name = row.theme or self._theme_from_attributes(row) or DEFAULT_THEME
        question.question_order = ctx.next_order(("question", group.gid), lambda: self._start_order(group.gid))
        ctx.save(question, row)
        self.index.add_question(question)

        write_question_texts(ctx, question, row)
        writer.write(question, attributes, row)

        ctx.seen_questions.add(code)
        ctx.current_question = question
        return question

    @staticmethod
    def _theme_from_attributes(row: QuestionRow) -> str:
        for attribute in row.attributes:
            if attribute.name == THEME_ATTRIBUTE and attribute.value:
                return str(attribute.value)
        return ""

    def _start_order(self, gid: int) -> int:
        titles = self.context.planned.question_titles
        untouched = [q.question_order for q in self.index.questions_in_group(gid) if q.title not in titles]
        return max(untouched, default=0)


class SubQuestionMapper(EntityMapper):
    kind = RowKind.SUBQUESTION

    def find(self, parent: Question, title: str, scale_id: int = 0) -> Optional[Question]:
        return self.index.subquestions.get((parent.qid, scale_id, title))

    def apply_row(self, row: SubQuestionRow) -> Question:
        ctx = self.context
        parent = ctx.current_question
        code = self._require_code(row, "Sub-question")
        if parent is None:
            raise RowError(f"Sub-question '{code}' has no parent question", row.row_number)
        self._report_cells(row)
        writer = AttributeWriter(ctx)
        attributes = writer.prepare(parent.type, row)

        subquestion = upsert_subquestion(ctx, parent, code, 0, parent.type, row)
        subquestion.relevance = row.relevance
        ctx.save(subquestion, row)
        write_question_texts(ctx, subquestion, row)
        writer.write(subquestion, attributes, row)
        ctx.seen_children.add((parent.qid, 0, code))
        return subquestion


class AnswerMapper(EntityMapper):
    """
    Applies "a" rows.

    Under a multi-flex question the row becomes a column sub-question
    (scale 1); otherwise it is a plain answer option.
    """

    kind = RowKind.ANSWER

    def find(self, parent: Question, code: str, scale_id: int = 0) -> Optional[Answer]:
        return self.index.answers.get((parent.qid, scale_id, code))

    def apply_row(self, row: AnswerRow):
        ctx = self.context
        parent = ctx.current_question
        code = self._require_code(row, "Answer")
        if parent is None:
            raise RowError(f"Answer '{code}' has no parent question", row.row_number)

        question_type = QuestionType.from_code(parent.type)
        if question_type.is_multiflex:
            column = upsert_subquestion(ctx, parent, code, COLUMN_SCALE, COLUMN_SUBQUESTION_TYPE, row)
            ctx.save(column, row)
            write_question_texts(ctx, column, row)
            ctx.seen_children.add((parent.qid, COLUMN_SCALE, code))
            return column

        if not question_type.has_answers:
            ctx.warnings.add(
                f"Row {row.row_number}: question {parent.title} of type '{parent.type}' "
                f"does not use answer options; answer '{code}' stored anyway"
            )

        key = (parent.qid, code)
        if key in ctx.seen_answers:
            raise RowError(f"Duplicate answer code '{code}' for question {parent.title}", row.row_number)
        answer = _copy(self.find(parent, code)) or Answer(qid=parent.qid, code=code)
        answer.sort_order = ctx.next_order(
            ("answer", parent.qid), lambda: self._start_order(parent)
        )
        ctx.save(answer, row)
        self.index.add_answer(answer)

        for language in ctx.languages:
            l10n = _copy(self.index.answer_l10n.get((answer.aid, language))) or AnswerL10n(
                aid=answer.aid, language=language
            )
            l10n.answer = row.text(language).value
            ctx.save(l10n, row)
            self.index.answer_l10n[(answer.aid, language)] = l10n

        ctx.seen_answers.add(key)
        return answer

    def _start_order(self, parent: Question) -> int:
        children = self.context.planned.children
        untouched = [
            a.sort_order
            for a in self.index.answers_of(parent.qid, 0)
            if (parent.title, RowKind.ANSWER, a.code) not in children
        ]
        return max(untouched, default=0)


# ============================================================================
# Shared helpers
# ============================================================================


def upsert_subquestion(
    ctx: ImportContext, parent: Question, code: str, scale_id: int, question_type: str, row: DecodedRow
) -> Question:
    """Find or create a sub-question and set its structural fields (not saved, not marked seen)."""
    key = (parent.qid, scale_id, code)
    if key in ctx.seen_children:
        raise RowError(f"Duplicate sub-question code '{code}' for question {parent.title}", row.row_number)
    subquestion = _copy(ctx.index.subquestions.get(key)) or Question(
        sid=ctx.survey.sid, parent_qid=parent.qid, title=code, scale_id=scale_id
    )
    subquestion.gid = parent.gid
    subquestion.type = question_type
    subquestion.mandatory = "N"
    subquestion.question_order = ctx.next_order(
        ("subquestion", parent.qid, scale_id), lambda: _subquestion_start(ctx, parent, scale_id)
    )
    return subquestion


def _subquestion_start(ctx: ImportContext, parent: Question, scale_id: int) -> int:
    children = ctx.planned.children
    row_kind = RowKind.SUBQUESTION if scale_id == 0 else RowKind.ANSWER
    untouched = [
        q.question_order
        for q in ctx.index.children_of(parent.qid, scale_id)
        if (parent.title, row_kind, q.title) not in children
    ]
    return max(untouched, default=0)


def write_question_texts(ctx: ImportContext, question: Question, row: DecodedRow) -> None:
    """Upsert one QuestionL10n per file language for a saved question."""
    ctx.index.add_question(question)
    for language in ctx.languages:
        text = row.text(language)
        l10n = _copy(ctx.index.question_l10n.get((question.qid, language))) or QuestionL10n(
            qid=question.qid, language=language
        )
        l10n.question = text.value
        if row.kind is not RowKind.ANSWER:
            l10n.help = text.help
            l10n.script = text.script
        ctx.save(l10n, row)
        ctx.index.question_l10n[(question.qid, language)] = l10n


def _copy(record):
    """Work on a copy so the index only ever holds saved state."""
    return replace(record) if record is not None else None


def mapper_for(kind: RowKind, context: ImportContext) -> EntityMapper:
    return _MAPPERS[kind](context)


_MAPPERS = {
    RowKind.GROUP: GroupMapper,
    RowKind.QUESTION: QuestionMapper,
    RowKind.SUBQUESTION: SubQuestionMapper,
    RowKind.ANSWER: AnswerMapper,
}


__all__ = [
    "ImportIndex",
    "PlannedKeys",
    "ImportContext",
    "AttributeWriter",
    "EntityMapper",
    "GroupMapper",
    "QuestionMapper",
    "SubQuestionMapper",
    "AnswerMapper",
    "mapper_for",
    "upsert_subquestion",
    "write_question_texts",
]
