"""
Relevance sheet: bulk review and editing of display conditions.

Sheet "relevances", header: group, code, parent, relevance

    group row:        (group name, "", "", relevance)
    question row:     ("", title, "", relevance)
    sub-question row: ("", title, parent title, relevance)

Group names are in the survey's base language. An empty relevance is
written as "1" (always shown).
"""

import logging
from typing import Dict, List, Optional

from .errors import RowError
from .exporters import AbstractExport
from .importers import ImportFromFile
from .model import Question, QuestionGroup, QuestionGroupL10n, Survey
from .store import EntityStore
from .tabular import RowStyle, TabularWriter

logger = logging.getLogger(__name__)

RELEVANCE_HEADER = ["group", "code", "parent", "relevance"]
ALWAYS = "1"


def _relevance(value: str) -> str:
    return value if value else ALWAYS


class RelevancesExport(AbstractExport):
    kind = "relevances"
    sheet_name = "relevances"

    def header(self, survey: Survey) -> List[str]:
        return list(RELEVANCE_HEADER)

    def write_rows(self, survey: Survey, writer: TabularWriter) -> int:
        count = 0
        for group in self.store.find_all(QuestionGroup, order_by="group_order", sid=survey.sid):
            l10n = self.store.find_one(QuestionGroupL10n, gid=group.gid, language=survey.language)
            name = l10n.group_name if l10n else ""
            writer.add_row([name, "", "", _relevance(group.grelevance)], RowStyle.GROUP)
            count += 1
            questions = self.store.find_all(
                Question, order_by="question_order", sid=survey.sid, gid=group.gid, parent_qid=0
            )
            for question in questions:
                writer.add_row(["", question.title, "", _relevance(question.relevance)], RowStyle.QUESTION)
                count += 1
                subquestions = self.store.find_all(
                    Question, order_by=("scale_id", "question_order"), parent_qid=question.qid
                )
                for subquestion in subquestions:
                    writer.add_row(
                        ["", subquestion.title, question.title, _relevance(subquestion.relevance)],
                        RowStyle.SUBQUESTION,
                    )
                    count += 1
        return count


class RelevanceImport(ImportFromFile):
    """
    Updates relevance expressions only; never creates or deletes entities.

    A row with a group name updates that group. A row with a parent code
    updates that parent's sub-question. Anything else updates the
    top-level question with the row's code. Rows matching nothing are
    row errors.
    """

    kind = "relevances"

    def __init__(self, store: EntityStore, survey: Survey, path, settings=None):
        super().__init__(store, survey, path, settings)
        self._groups: Dict[str, QuestionGroup] = {}
        self._questions: Dict[str, Question] = {}
        self._subquestions: Dict[tuple, Question] = {}

    def check_structure(self) -> List[str]:
        if not self.rows:
            return ["No data to import"]
        missing = [c for c in ("code", "relevance") if c not in self.header]
        return [f"Missing required column: {column}" for column in missing]

    def begin(self) -> None:
        sid = self.survey.sid
        for group in self.store.find_all(QuestionGroup, sid=sid):
            l10n = self.store.find_one(QuestionGroupL10n, gid=group.gid, language=self.survey.language)
            if l10n and l10n.group_name:
                self._groups.setdefault(l10n.group_name, group)
        for question in self.store.find_all(Question, sid=sid):
            if question.parent_qid:
                self._subquestions.setdefault((question.parent_qid, question.title), question)
            else:
                self._questions[question.title] = question

    def apply_record(self, row_number: int, record: Dict[str, str]) -> None:
        group_name = record.get("group", "").strip()
        code = record.get("code", "").strip()
        parent = record.get("parent", "").strip()
        relevance = record.get("relevance", "")

        if group_name:
            group = self._groups.get(group_name)
            if group is None:
                raise RowError(f"Unable to find group with name: {group_name}", row_number)
            group.grelevance = relevance
            self._save(group, row_number)
            return

        target = self._find_question(code, parent, row_number)
        target.relevance = relevance
        self._save(target, row_number)

    def _find_question(self, code: str, parent: str, row_number: int) -> Question:
        if parent:
            parent_question = self._questions.get(parent)
            if parent_question is None:
                raise RowError(f"Unable to find parent question {parent} for question {code}", row_number)
            subquestion = self._subquestions.get((parent_question.qid, code))
            if subquestion is None:
                raise RowError(f"Unable to find sub-question {code} of question {parent}", row_number)
            return subquestion
        question: Optional[Question] = self._questions.get(code)
        if question is None:
            raise RowError(f"Unable to find question {code}", row_number)
        return question

    def _save(self, record, row_number: int) -> None:
        if not self.store.save(record):
            raise RowError(
                f"Unable to save relevance: {'; '.join(self.store.last_errors)}", row_number
            )


__all__ = ["RelevancesExport", "RelevanceImport", "RELEVANCE_HEADER"]
