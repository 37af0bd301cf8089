"""
Export engines: write a survey's structure to a tabular file.

Every export writes one data sheet, starting with a styled header row.
QuestionsExport adds two reference sheets that are never read back:
    - helpSheet: question type codes and their names
    - possibleAttributes: every attribute each question type accepts

Files are named "survey_{sid}_{kind}_{token}.{ext}" unless the caller
gives an explicit path.
"""

import logging
import secrets
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from .attributes import AttributeLanguageClassifier, AttributeSchema
from .model import (
    Answer,
    AnswerL10n,
    Question,
    QuestionAttribute,
    QuestionGroup,
    QuestionGroupL10n,
    QuestionL10n,
    Survey,
)
from .question_types import all_question_types
from .report import WarningCollector
from .row_codec import ColumnLayout, RowEncoder
from .store import EntityStore
from .tabular import RowStyle, TabularWriter, open_for_write

logger = logging.getLogger(__name__)

HELP_SHEET = "helpSheet"
ATTRIBUTES_SHEET = "possibleAttributes"
ATTRIBUTES_HEADER = [
    "question_type",
    "attribute",
    "scope",
    "primitive",
    "default",
    "allowed_values",
    "description",
]


class AbstractExport:
    """
    Shared file handling for exports.

    Subclasses set kind and sheet_name and implement header() and
    write_rows().
    """

    kind = ""
    sheet_name = "data"

    def __init__(self, store: EntityStore):
        self.store = store
        self.warnings = WarningCollector(logger)

    def file_name(self, survey: Survey, extension: str = "xlsx") -> str:
        token = secrets.token_hex(2)
        return f"survey_{survey.sid}_{self.kind}_{token}.{extension}"

    def export(self, survey: Survey, path=None, directory=None, extension: str = "xlsx") -> Path:
        """
        Write the export file.

        Args:
            survey: Survey to export
            path: Explicit target file; its extension picks the format
            directory: Where to create a generated file name when path is
                not given (defaults to the system temp directory)
            extension: Format of a generated file name ("xlsx" or "csv")

        Returns:
            Path of the written file
        """
        if path is None:
            directory = Path(directory) if directory else Path(tempfile.gettempdir())
            directory.mkdir(parents=True, exist_ok=True)
            path = directory / self.file_name(survey, extension)
        path = Path(path)

        with open_for_write(path, self.sheet_name) as writer:
            writer.add_row(self.header(survey), RowStyle.HEADER)
            count = self.write_rows(survey, writer)
            self.write_extra_sheets(survey, writer)
        logger.info("Exported %d %s rows of survey %s to %s", count, self.kind, survey.sid, path)
        return path

    def header(self, survey: Survey) -> List[str]:
        raise NotImplementedError

    def write_rows(self, survey: Survey, writer: TabularWriter) -> int:
        raise NotImplementedError

    def write_extra_sheets(self, survey: Survey, writer: TabularWriter) -> None:
        """Hook for reference sheets."""


class QuestionsExport(AbstractExport):
    """
    Exports groups, questions, sub-questions, answers and attributes.

    Row order: each group in order, then for each of its questions the Q
    row, its answer rows (or column sub-questions for multi-flex types),
    then its sub-question rows.
    """

    kind = "questions"
    sheet_name = "questions"

    def __init__(
        self,
        store: EntityStore,
        schema: Optional[AttributeSchema] = None,
        classifier: Optional[AttributeLanguageClassifier] = None,
    ):
        super().__init__(store)
        self.schema = schema or AttributeSchema.default()
        self.classifier = classifier or AttributeLanguageClassifier()

    def header(self, survey: Survey) -> List[str]:
        return ColumnLayout(survey.languages()).header()

    def write_rows(self, survey: Survey, writer: TabularWriter) -> int:
        encoder = RowEncoder(
            ColumnLayout(survey.languages()), self.schema, self.classifier, warn=self.warnings.add
        )
        count = 0
        for group in self.store.find_all(QuestionGroup, order_by="group_order", sid=survey.sid):
            l10ns = _by_language(self.store.find_all(QuestionGroupL10n, gid=group.gid))
            writer.add_row(encoder.encode_group(group, l10ns), RowStyle.GROUP)
            count += 1
            questions = self.store.find_all(
                Question, order_by="question_order", sid=survey.sid, gid=group.gid, parent_qid=0
            )
            for question in questions:
                count += self._write_question(question, encoder, writer)
        return count

    def _write_question(self, question: Question, encoder: RowEncoder, writer: TabularWriter) -> int:
        writer.add_row(
            encoder.encode_question(question, self._question_l10ns(question), self._attributes(question)),
            RowStyle.QUESTION,
        )
        count = 1

        if question.question_type.is_multiflex:
            for column in self._children(question, scale_id=1):
                writer.add_row(encoder.encode_column_subquestion(column, self._question_l10ns(column)))
                count += 1
        else:
            for answer in self.store.find_all(Answer, order_by="sort_order", qid=question.qid):
                if answer.scale_id != 0:
                    self.warnings.add(
                        f"Question {question.title}: answer '{answer.code}' on scale "
                        f"{answer.scale_id} not exported"
                    )
                    continue
                l10ns = _by_language(self.store.find_all(AnswerL10n, aid=answer.aid))
                writer.add_row(encoder.encode_answer(answer, l10ns))
                count += 1

        for subquestion in self._children(question, scale_id=0):
            writer.add_row(
                encoder.encode_question(
                    subquestion, self._question_l10ns(subquestion), self._attributes(subquestion)
                ),
                RowStyle.SUBQUESTION,
            )
            count += 1
        return count

    def _children(self, question: Question, scale_id: int) -> List[Question]:
        return self.store.find_all(
            Question, order_by="question_order", parent_qid=question.qid, scale_id=scale_id
        )

    def _question_l10ns(self, question: Question) -> Dict[str, QuestionL10n]:
        return _by_language(self.store.find_all(QuestionL10n, qid=question.qid))

    def _attributes(self, question: Question) -> List[QuestionAttribute]:
        return self.store.find_all(QuestionAttribute, order_by="attribute", qid=question.qid)

    # ========================================================================
    # Reference sheets
    # ========================================================================

    def write_extra_sheets(self, survey: Survey, writer: TabularWriter) -> None:
        writer.add_sheet(HELP_SHEET)
        writer.add_row(["code", "name"], RowStyle.HEADER)
        writer.add_rows([[t.value, t.display_name] for t in all_question_types()])

        writer.add_sheet(ATTRIBUTES_SHEET)
        writer.add_row(ATTRIBUTES_HEADER, RowStyle.HEADER)
        writer.add_rows(self.attribute_reference_rows())

    def attribute_reference_rows(self) -> List[List[str]]:
        """One row per (question type, attribute), types in registry order."""
        rows = []
        for question_type in self.schema.question_types():
            attributes = self.schema.attributes_for(question_type)
            for name in sorted(attributes):
                descriptor = attributes[name]
                scope = "language" if self.classifier.is_language_specific(name) else "global"
                rows.append(
                    [
                        question_type.value,
                        name,
                        scope,
                        descriptor.primitive.value,
                        descriptor.default,
                        descriptor.allowed_values(),
                        descriptor.description,
                    ]
                )
        return rows


def _by_language(records) -> Dict[str, object]:
    return {record.language: record for record in records}


__all__ = [
    "AbstractExport",
    "QuestionsExport",
    "HELP_SHEET",
    "ATTRIBUTES_SHEET",
    "ATTRIBUTES_HEADER",
]
