"""
Import engines: replay a tabular file onto a survey's structure.

Every import runs through the same small state machine:

    UNPREPARED --prepare()--> PREPARED --validate()--> VALIDATED
        --process()--> PROCESSING --> DONE
                                  \\-> FAILED (strict-mode fatal row)
    PREPARED --validate()--> FAILED (structural errors, nothing written)

prepare() reads the first sheet fully into memory. validate() scans every
row and reports file-level problems as one StructuralError. process()
applies rows in file order, collecting row errors and warnings, and
deletes the input file once it reaches DONE.

ARCHITECTURAL RULE:
    There is no transaction. Rows applied before a failure stay applied;
    callers serialize imports per survey.
"""

import logging
import shutil
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .attributes import AttributeLanguageClassifier, AttributeSchema
from .config import SurveySettings
from .errors import (
    ImportStateError,
    MalformedCellError,
    RowError,
    SaveError,
    StructuralError,
    SurveyActiveError,
)
from .mappers import ImportContext, ImportIndex, PlannedKeys, mapper_for
from .model import (
    Answer,
    AnswerL10n,
    Question,
    QuestionAttribute,
    QuestionGroup,
    QuestionGroupL10n,
    QuestionL10n,
    QuotaMember,
    Survey,
)
from .report import ImportResult, WarningCollector
from .row_codec import COL_TYPE, ColumnLayout, DecodedRow, RowKind, decode_row, numbered_rows
from .store import EntityStore
from .tabular import open_for_read

logger = logging.getLogger(__name__)


class ImportState(Enum):
    UNPREPARED = "unprepared"
    PREPARED = "prepared"
    VALIDATED = "validated"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class ImportFromFile:
    """
    Base import: file handling, state machine and the row loop.

    Subclasses implement check_structure() and apply_record(), and may
    override records() to hand process() decoded rows instead of raw
    header-indexed dicts.

    Args:
        store: Entity store to write to
        survey: Target survey
        path: File to import; deleted when the import reaches DONE
        settings: Effective settings for the survey
    """

    kind = "file"

    def __init__(
        self,
        store: EntityStore,
        survey: Survey,
        path,
        settings: Optional[SurveySettings] = None,
    ):
        self.store = store
        self.survey = survey
        self.path = Path(path)
        self.settings = settings or SurveySettings()
        self.state = ImportState.UNPREPARED
        self.header: List[str] = []
        self.rows: List[Tuple[int, Dict[str, str]]] = []
        self.warnings = WarningCollector(logger)
        self.result = ImportResult()

    @staticmethod
    def load_file(uploaded, temp_dir, kind: str = "file") -> Path:
        """
        Copy an uploaded file into the temp directory under a unique name.

        The import works on (and later deletes) the copy, never the upload.
        """
        source = Path(uploaded)
        target_dir = Path(temp_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / f"{kind}_{uuid.uuid4().hex}{source.suffix.lower()}"
        shutil.copyfile(source, target)
        logger.debug("Copied %s to %s", source, target)
        return target

    # ========================================================================
    # State machine
    # ========================================================================

    def prepare(self) -> None:
        """
        Read the first sheet of the file.

        Raises:
            ImportStateError: If called twice
            UnsupportedFileError: For unreadable extensions
        """
        self._require(ImportState.UNPREPARED, "prepare")
        with open_for_read(self.path) as reader:
            sheet = reader.first_sheet()
        if sheet.rows:
            self.header = [str(h).strip().lower() for h in sheet.rows[0]]
        self.rows = numbered_rows(sheet.rows)
        self.state = ImportState.PREPARED
        logger.info("Read %d rows from %s", len(self.rows), self.path.name)

    def validate(self) -> None:
        """
        Check the whole file before anything is written.

        Raises:
            StructuralError: With every problem found; state becomes FAILED
        """
        self._require(ImportState.PREPARED, "validate")
        messages = self.check_structure()
        if messages:
            self.state = ImportState.FAILED
            for message in messages:
                logger.warning("Structural error: %s", message)
            raise StructuralError(messages)
        self.state = ImportState.VALIDATED

    def process(self) -> ImportResult:
        """
        Apply every row.

        Raises:
            SurveyActiveError: If the survey is active (nothing is written)
        """
        self._require(ImportState.VALIDATED, "process")
        if self.survey.active:
            self.state = ImportState.FAILED
            raise SurveyActiveError(
                f"Survey {self.survey.sid} is active; its structure cannot be changed"
            )

        self.state = ImportState.PROCESSING
        self.begin()
        result = self.result
        for row_number, record in self.records():
            result.processed_count += 1
            try:
                self.apply_record(row_number, record)
            except RowError as e:
                if e.row_number is None:
                    e.row_number = row_number
                result.failed_count += 1
                result.errors.append(e)
                logger.warning("Import failed on %s", e)
                if self.is_fatal(e):
                    self.state = ImportState.FAILED
                    break
            else:
                result.success_count += 1
        result.warnings = self.warnings.messages

        if self.state is ImportState.PROCESSING:
            self.state = ImportState.DONE
            self.discard_file()
        logger.info("Import %s of survey %s: %s", self.kind, self.survey.sid, result.summary())
        return result

    def run(self) -> ImportResult:
        """
        prepare(), validate() and process() in one call.

        Structural errors are returned on the result instead of raised.
        SurveyActiveError still propagates.
        """
        self.prepare()
        try:
            self.validate()
        except StructuralError as e:
            self.result.errors.extend(RowError(message) for message in e.messages)
            self.result.warnings = self.warnings.messages
            return self.result
        return self.process()

    def discard_file(self) -> None:
        """Delete the input file. Done automatically once the import is DONE."""
        self.path.unlink(missing_ok=True)

    def is_fatal(self, error: RowError) -> bool:
        return self.settings.strict and isinstance(error, (SaveError, MalformedCellError))

    # ========================================================================
    # Subclass hooks
    # ========================================================================

    def check_structure(self) -> List[str]:
        raise NotImplementedError

    def begin(self) -> None:
        """Called once, after the active-survey guard and before the first row."""

    def records(self) -> Iterable[Tuple[int, Any]]:
        return self.rows

    def apply_record(self, row_number: int, record: Any) -> None:
        raise NotImplementedError

    # ========================================================================
    # Internal
    # ========================================================================

    def _require(self, expected: ImportState, step: str) -> None:
        if self.state is not expected:
            raise ImportStateError(
                f"Cannot {step}() in state {self.state.value}; expected {expected.value}"
            )


class StructureImport(ImportFromFile):
    """
    Imports the "questions" sheet: groups, questions, sub-questions,
    answers and question attributes.

    Args:
        schema: Attribute schema used to gate and validate attributes
        classifier: Language classifier used to report misplaced attributes
        clear_existing: Delete the survey's current structure before
            applying rows (refused for active surveys)
    """

    kind = "questions"

    def __init__(
        self,
        store: EntityStore,
        survey: Survey,
        path,
        schema: Optional[AttributeSchema] = None,
        classifier: Optional[AttributeLanguageClassifier] = None,
        settings: Optional[SurveySettings] = None,
        clear_existing: bool = False,
    ):
        super().__init__(store, survey, path, settings)
        self.schema = schema or AttributeSchema.default()
        self.classifier = classifier or AttributeLanguageClassifier()
        self.clear_existing = clear_existing
        self.languages: List[str] = []
        self.decoded: List[DecodedRow] = []
        self.context: Optional[ImportContext] = None

    def check_structure(self) -> List[str]:
        messages: List[str] = []
        if not self.rows:
            return ["No data to import"]

        file_languages = ColumnLayout.languages_from_header(self.header)
        if not file_languages:
            return ["No language columns found; expected headers like 'value-en'"]
        self.languages = self._match_languages(file_languages, messages)
        if not self.languages:
            return messages

        for row_number, row in self.rows:
            if RowKind.parse(row.get(COL_TYPE)) is None:
                messages.append(f"Invalid row type '{row.get(COL_TYPE, '')}' on row {row_number}")
                continue
            self.decoded.append(decode_row(row, self.languages, row_number))
        return messages

    def _match_languages(self, file_languages: Sequence[str], messages: List[str]) -> List[str]:
        by_lower = {language.lower(): language for language in self.survey.languages()}
        matched = [by_lower[language] for language in file_languages if language in by_lower]
        extra = [language for language in file_languages if language not in by_lower]
        if not matched:
            messages.append(
                f"None of the file languages ({', '.join(file_languages)}) belong to survey "
                f"{self.survey.sid} ({', '.join(self.survey.languages())})"
            )
        elif extra:
            self.warnings.add(
                f"Ignoring columns for languages not in survey {self.survey.sid}: {', '.join(extra)}"
            )
        return matched

    def begin(self) -> None:
        if self.clear_existing:
            clear_survey_structure(self.store, self.survey.sid)
        base_language = self.survey.language
        index = ImportIndex.build(self.store, self.survey, base_language)
        self.context = ImportContext(
            self.store,
            index,
            self.languages,
            self.schema,
            self.classifier,
            self.settings,
            warnings=self.warnings,
            planned=PlannedKeys.from_rows(self.decoded, base_language),
        )

    def records(self) -> Iterable[Tuple[int, DecodedRow]]:
        return [(row.row_number, row) for row in self.decoded]

    def apply_record(self, row_number: int, record: DecodedRow) -> None:
        mapper_for(record.kind, self.context).apply_row(record)


def clear_survey_structure(store: EntityStore, sid: int) -> int:
    """
    Delete every group, question, answer and attribute of a survey.

    Quota members pointing at deleted questions go too. Returns the
    number of records removed.
    """
    removed = 0
    questions = store.find_all(Question, sid=sid)
    for question in questions:
        removed += store.delete_all(QuestionL10n, qid=question.qid)
        removed += store.delete_all(QuestionAttribute, qid=question.qid)
        for answer in store.find_all(Answer, qid=question.qid):
            removed += store.delete_all(AnswerL10n, aid=answer.aid)
        removed += store.delete_all(Answer, qid=question.qid)
    removed += store.delete_all(QuotaMember, sid=sid)
    removed += store.delete_all(Question, sid=sid)
    for group in store.find_all(QuestionGroup, sid=sid):
        removed += store.delete_all(QuestionGroupL10n, gid=group.gid)
    removed += store.delete_all(QuestionGroup, sid=sid)
    logger.info("Cleared structure of survey %s (%d records)", sid, removed)
    return removed


__all__ = [
    "ImportState",
    "ImportFromFile",
    "StructureImport",
    "clear_survey_structure",
]
