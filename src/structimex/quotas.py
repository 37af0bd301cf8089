"""
Quota sheet: quotas, their members and per-language messages.

Sheet "quotas", header:

    type, name, value, active, autoload_url,
    message-{l}, url-{l}, url_description-{l}   (repeated per language)

    Q row:  quota name, limit (value), active flag, autoload_url flag and
            the per-language settings
    QM row: member of the most recent Q row; name is the question code,
            value the answer code

A question may be a member of a quota at most once, since members of
one quota are combined with AND.
"""

import logging
from typing import Dict, List, Optional, Set

from .errors import RowError
from .exporters import AbstractExport
from .importers import ImportFromFile
from .model import Question, Quota, QuotaLanguageSetting, QuotaMember, Survey
from .store import EntityStore
from .tabular import RowStyle, TabularWriter

logger = logging.getLogger(__name__)

QUOTA_ROW = "Q"
MEMBER_ROW = "QM"
QUOTA_COLUMNS = ["type", "name", "value", "active", "autoload_url"]
LANGUAGE_PREFIXES = ("message", "url", "url_description")
REQUIRED_COLUMNS = ("type", "name", "value")


def quota_header(languages: List[str]) -> List[str]:
    columns = list(QUOTA_COLUMNS)
    for language in languages:
        columns += [f"{prefix}-{language}" for prefix in LANGUAGE_PREFIXES]
    return columns


class QuotasExport(AbstractExport):
    kind = "quotas"
    sheet_name = "quotas"

    def header(self, survey: Survey) -> List[str]:
        return quota_header(survey.languages())

    def write_rows(self, survey: Survey, writer: TabularWriter) -> int:
        languages = survey.languages()
        titles = {q.qid: q.title for q in self.store.find_all(Question, sid=survey.sid)}
        count = 0
        for quota in self.store.find_all(Quota, order_by="name", sid=survey.sid):
            settings = {
                s.language: s for s in self.store.find_all(QuotaLanguageSetting, quota_id=quota.id)
            }
            row = [QUOTA_ROW, quota.name, quota.qlimit, quota.active, quota.autoload_url]
            for language in languages:
                setting = settings.get(language)
                if setting is None:
                    row += ["", "", ""]
                else:
                    row += [setting.message, setting.url, setting.url_description]
            writer.add_row(row, RowStyle.GROUP)
            count += 1

            for member in self.store.find_all(QuotaMember, order_by=("qid", "code"), quota_id=quota.id):
                title = titles.get(member.qid)
                if title is None:
                    self.warnings.add(
                        f"Quota {quota.name}: member points at missing question {member.qid}; skipped"
                    )
                    continue
                writer.add_row([MEMBER_ROW, title, member.code, "", ""] + [""] * (3 * len(languages)))
                count += 1
        return count


class QuotaImport(ImportFromFile):
    """
    Upserts quotas by name and quota members by (quota, question).

    Validation checks every member reference before anything is written:
    missing codes, unknown questions and a question listed twice in one
    quota are structural errors.
    """

    kind = "quotas"

    def __init__(self, store: EntityStore, survey: Survey, path, settings=None):
        super().__init__(store, survey, path, settings)
        self._questions: Dict[str, Question] = {}
        self._current: Optional[Quota] = None

    def check_structure(self) -> List[str]:
        if not self.rows:
            return ["No data to import"]
        messages = [f"Missing required column: {c}" for c in REQUIRED_COLUMNS if c not in self.header]
        if messages:
            return messages

        known = {q.title for q in self.store.find_all(Question, sid=self.survey.sid, parent_qid=0)}
        missing: List[str] = []
        quota_name: Optional[str] = None
        members: Set[str] = set()
        for row_number, row in self.rows:
            row_type = row.get("type", "").strip()
            if row_type == QUOTA_ROW:
                quota_name = row.get("name", "").strip()
                members = set()
                continue
            if row_type != MEMBER_ROW:
                continue
            question_code = row.get("name", "").strip()
            answer_code = row.get("value", "").strip()
            if quota_name is None:
                messages.append(f"Quota member on row {row_number} does not follow a quota row")
                continue
            if not question_code:
                messages.append(f"Quota member in quota '{quota_name}' has empty question code")
                continue
            if not answer_code:
                messages.append(f"Quota member in quota '{quota_name}' has empty answer code")
                continue
            if question_code in members:
                messages.append(
                    f"Question '{question_code}' appears multiple times in quota '{quota_name}'"
                )
            members.add(question_code)
            if question_code not in known and question_code not in missing:
                missing.append(question_code)
        if missing:
            messages.append(f"Referenced questions not found in survey: {', '.join(missing)}")
        return messages

    def begin(self) -> None:
        for question in self.store.find_all(Question, sid=self.survey.sid, parent_qid=0):
            self._questions[question.title] = question

    def apply_record(self, row_number: int, record: Dict[str, str]) -> None:
        row_type = record.get("type", "").strip()
        if row_type == QUOTA_ROW:
            # A failed Q row must not leave its members attached to the previous quota
            self._current = None
            self._current = self._import_quota(row_number, record)
        elif row_type == MEMBER_ROW:
            self._import_member(row_number, record)
        else:
            raise RowError(f"Invalid row type: {row_type}", row_number)

    def _import_quota(self, row_number: int, record: Dict[str, str]) -> Quota:
        name = record.get("name", "").strip()
        if not name:
            raise RowError("Quota name is required", row_number)
        quota = self.store.find_one(Quota, sid=self.survey.sid, name=name) or Quota(
            sid=self.survey.sid, name=name
        )
        quota.qlimit = _to_int(record.get("value"), 0, "value", row_number)
        quota.active = _to_int(record.get("active"), 1, "active", row_number)
        quota.autoload_url = _to_int(record.get("autoload_url"), 0, "autoload_url", row_number)
        if not self.store.save(quota):
            raise RowError(f"Failed to save quota: {'; '.join(self.store.last_errors)}", row_number)
        self._import_language_settings(quota, row_number, record)
        return quota

    def _import_language_settings(self, quota: Quota, row_number: int, record: Dict[str, str]) -> None:
        for language in self.survey.languages():
            columns = [f"{prefix}-{language.lower()}" for prefix in LANGUAGE_PREFIXES]
            if not any(column in record for column in columns):
                continue
            message, url, description = (record.get(column, "").strip() for column in columns)
            if quota.autoload_url == 1 and not url:
                raise RowError(
                    f"URL cannot be empty when autoload_url is enabled for quota '{quota.name}'",
                    row_number,
                )
            setting = self.store.find_one(
                QuotaLanguageSetting, quota_id=quota.id, language=language
            ) or QuotaLanguageSetting(quota_id=quota.id, language=language)
            setting.message = message
            setting.url = url
            setting.url_description = description
            if not self.store.save(setting):
                raise RowError(
                    f"Failed to save quota language settings: {'; '.join(self.store.last_errors)}",
                    row_number,
                )

    def _import_member(self, row_number: int, record: Dict[str, str]) -> None:
        if self._current is None:
            raise RowError("Quota member has no quota", row_number)
        question_code = record.get("name", "").strip()
        question = self._questions.get(question_code)
        if question is None:
            raise RowError(f"Question not found: {question_code}", row_number)
        member = self.store.find_one(
            QuotaMember, quota_id=self._current.id, qid=question.qid
        ) or QuotaMember(quota_id=self._current.id, qid=question.qid)
        member.sid = self.survey.sid
        member.code = record.get("value", "").strip()
        if not self.store.save(member):
            raise RowError(
                f"Failed to save quota member: {'; '.join(self.store.last_errors)}", row_number
            )


def _to_int(value: Optional[str], default: int, column: str, row_number: int) -> int:
    text = (value or "").strip()
    if not text:
        return default
    try:
        return int(float(text))
    except ValueError:
        raise RowError(f"Column '{column}' must be a number, got '{text}'", row_number) from None


__all__ = ["QuotasExport", "QuotaImport", "quota_header"]
