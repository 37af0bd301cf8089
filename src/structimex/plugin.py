"""
Host facade: the narrow surface a host application calls.

    imex = StructureImEx(store, settings)
    path = imex.export_structure(123456, "questions")
    result = imex.import_structure(123456, "edited.xlsx")

Export kinds: questions, relevances, quotas. The same kinds are
importable. Uploaded files are copied into the temp directory first and
the import works on the copy; the copy is deleted whether or not the
import succeeds.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Type

from .attributes import AttributeLanguageClassifier, AttributeSchema
from .config import ImexSettings
from .errors import SurveyActiveError, SurveyNotFoundError, UnknownExportKindError
from .exporters import AbstractExport, QuestionsExport
from .importers import ImportFromFile, ImportState, StructureImport, clear_survey_structure
from .model import Survey
from .quotas import QuotaImport, QuotasExport
from .relevances import RelevanceImport, RelevancesExport
from .report import ImportResult
from .store import EntityStore

logger = logging.getLogger(__name__)

KIND_QUESTIONS = "questions"
KIND_RELEVANCES = "relevances"
KIND_QUOTAS = "quotas"

EXPORT_KINDS: Dict[str, Type[AbstractExport]] = {
    KIND_QUESTIONS: QuestionsExport,
    KIND_RELEVANCES: RelevancesExport,
    KIND_QUOTAS: QuotasExport,
}

IMPORT_KINDS: Dict[str, Type[ImportFromFile]] = {
    KIND_QUESTIONS: StructureImport,
    KIND_RELEVANCES: RelevanceImport,
    KIND_QUOTAS: QuotaImport,
}


class StructureImEx:
    """
    Entry point for hosts.

    Args:
        store: Entity store holding the surveys
        settings: Package settings (defaults when omitted)
        schema: Attribute schema; built from the bundled tables when omitted
        classifier: Attribute language classifier
    """

    def __init__(
        self,
        store: EntityStore,
        settings: Optional[ImexSettings] = None,
        schema: Optional[AttributeSchema] = None,
        classifier: Optional[AttributeLanguageClassifier] = None,
    ):
        self.store = store
        self.settings = settings or ImexSettings()
        self.schema = schema or AttributeSchema.default()
        self.classifier = classifier or AttributeLanguageClassifier()
        self.last_import: Optional[ImportFromFile] = None
        self.last_export: Optional[AbstractExport] = None

    def get_survey(self, survey_id: int) -> Survey:
        survey = self.store.find_one(Survey, sid=survey_id)
        if survey is None:
            raise SurveyNotFoundError(f"Survey {survey_id} not found")
        return survey

    def export_structure(self, survey_id: int, kind: str = KIND_QUESTIONS, extension: str = "xlsx") -> Path:
        """
        Export one sheet kind of a survey into the export directory.

        Raises:
            UnknownExportKindError: If kind is not questions/relevances/quotas
            SurveyNotFoundError: If the survey does not exist
        """
        if kind not in EXPORT_KINDS:
            raise UnknownExportKindError(f"Unknown export type '{kind}'")
        survey = self.get_survey(survey_id)
        if kind == KIND_QUESTIONS:
            exporter = QuestionsExport(self.store, self.schema, self.classifier)
        else:
            exporter = EXPORT_KINDS[kind](self.store)
        self.last_export = exporter
        return exporter.export(survey, directory=self.settings.export_path(), extension=extension)

    def import_structure(
        self,
        survey_id: int,
        uploaded_file,
        kind: str = KIND_QUESTIONS,
        clear_existing: bool = False,
    ) -> ImportResult:
        """
        Import an edited file.

        Args:
            survey_id: Target survey
            uploaded_file: Path of the uploaded file; it is copied, not consumed
            kind: Sheet kind of the file
            clear_existing: Delete the current structure first (questions only)

        Raises:
            UnknownExportKindError: If kind is not importable
            SurveyNotFoundError: If the survey does not exist
            SurveyActiveError: If the survey is active
            UnsupportedFileError: If the file extension is not readable
        """
        if kind not in IMPORT_KINDS:
            raise UnknownExportKindError(f"Unknown import type '{kind}'")
        survey = self.get_survey(survey_id)
        self._guard(survey)

        path = ImportFromFile.load_file(uploaded_file, self.settings.temp_path(), kind)
        survey_settings = self.settings.for_survey(survey_id)
        if kind == KIND_QUESTIONS:
            importer = StructureImport(
                self.store,
                survey,
                path,
                schema=self.schema,
                classifier=self.classifier,
                settings=survey_settings,
                clear_existing=clear_existing,
            )
        else:
            importer = IMPORT_KINDS[kind](self.store, survey, path, settings=survey_settings)
        self.last_import = importer
        try:
            return importer.run()
        finally:
            if importer.state is not ImportState.DONE:
                importer.discard_file()

    def clear_survey(self, survey_id: int) -> int:
        """
        Delete every group, question and answer of a survey.

        Raises:
            SurveyActiveError: If the survey is active
        """
        survey = self.get_survey(survey_id)
        self._guard(survey)
        return clear_survey_structure(self.store, survey.sid)

    @staticmethod
    def _guard(survey: Survey) -> None:
        if survey.active:
            raise SurveyActiveError(f"Survey {survey.sid} is active; its structure cannot be changed")


__all__ = [
    "StructureImEx",
    "EXPORT_KINDS",
    "IMPORT_KINDS",
    "KIND_QUESTIONS",
    "KIND_RELEVANCES",
    "KIND_QUOTAS",
]
