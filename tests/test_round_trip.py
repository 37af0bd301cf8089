"""
Round-trip tests: export, (optionally edit,) import, compare.

These tests verify:
    - Exporting and re-importing an unchanged file changes nothing
    - Re-exporting after the import gives the same rows
    - An exported file rebuilds the structure in an empty survey
    - Offline edits made with openpyxl are applied, and only those
"""

import pytest
from openpyxl import load_workbook

from structimex.config import ImexSettings
from structimex.examples import EXAMPLE_SURVEY_ID
from structimex.model import Answer, AnswerL10n, Question, QuestionGroup, QuestionL10n, Survey
from structimex.plugin import StructureImEx
from structimex.serialization import structure_snapshot
from structimex.tabular import open_for_read


def sheet_rows(path):
    with open_for_read(path) as reader:
        return [sheet.rows for sheet in reader.sheets()]


@pytest.fixture
def imex(example_store, tmp_path):
    settings = ImexSettings(export_dir=str(tmp_path / "exports"), temp_dir=str(tmp_path / "uploads"))
    return StructureImEx(example_store, settings)


class TestUnchangedRoundTrip:
    """Test that an unedited export imports as a no-op."""

    @pytest.mark.parametrize("extension", ["xlsx", "csv"])
    def test_snapshot_unchanged(self, imex, example_store, extension):
        """Should leave the structure identical."""
        before = structure_snapshot(example_store, EXAMPLE_SURVEY_ID)
        path = imex.export_structure(EXAMPLE_SURVEY_ID, extension=extension)
        result = imex.import_structure(EXAMPLE_SURVEY_ID, path)
        assert result.ok, result.error_messages()
        assert result.warnings == []
        assert result.processed_count == 19
        assert structure_snapshot(example_store, EXAMPLE_SURVEY_ID) == before

    def test_reexport_identical(self, imex):
        """Should export the same rows after the import."""
        first = imex.export_structure(EXAMPLE_SURVEY_ID)
        imex.import_structure(EXAMPLE_SURVEY_ID, first)
        second = imex.export_structure(EXAMPLE_SURVEY_ID)
        assert sheet_rows(first) == sheet_rows(second)

    def test_into_empty_survey(self, imex, example_store):
        """Should rebuild the same structure in another survey."""
        example_store.save(Survey(sid=1, language="en", additional_languages=["de"]))
        path = imex.export_structure(EXAMPLE_SURVEY_ID)
        result = imex.import_structure(1, path)
        assert result.ok, result.error_messages()
        original = structure_snapshot(example_store, EXAMPLE_SURVEY_ID)
        copy = structure_snapshot(example_store, 1)
        assert copy["groups"] == original["groups"]

    def test_shared_answer_and_subquestion_codes(self, imex, example_store):
        """Should re-import an array whose answers and sub-questions use the same codes."""
        group = example_store.find_one(QuestionGroup, sid=EXAMPLE_SURVEY_ID, group_order=2)
        order = max(q.question_order for q in example_store.find_all(Question, gid=group.gid, parent_qid=0)) + 1
        common = dict(sid=EXAMPLE_SURVEY_ID, gid=group.gid, type="F")
        arr = Question(title="arr", question_order=order, **common)
        example_store.save(arr)
        for code in ("1", "2"):
            sq = Question(title=code, parent_qid=arr.qid, question_order=int(code), **common)
            example_store.save(sq)
            answer = Answer(qid=arr.qid, code=code, sort_order=int(code))
            example_store.save(answer)
            for language in ("en", "de"):
                example_store.save(QuestionL10n(qid=sq.qid, language=language, question=f"Row {code}"))
                example_store.save(AnswerL10n(aid=answer.aid, language=language, answer=f"Level {code}"))
        for language in ("en", "de"):
            example_store.save(QuestionL10n(qid=arr.qid, language=language, question="Rate"))

        before = structure_snapshot(example_store, EXAMPLE_SURVEY_ID)
        path = imex.export_structure(EXAMPLE_SURVEY_ID)
        result = imex.import_structure(EXAMPLE_SURVEY_ID, path)
        assert result.ok, result.error_messages()
        assert result.processed_count == 24
        assert structure_snapshot(example_store, EXAMPLE_SURVEY_ID) == before


class TestEditedRoundTrip:
    """Test offline edits."""

    def test_edit_and_append(self, imex, example_store, tmp_path):
        """Should apply changed texts and appended rows only."""
        before = structure_snapshot(example_store, EXAMPLE_SURVEY_ID)
        path = imex.export_structure(EXAMPLE_SURVEY_ID)

        workbook = load_workbook(path)
        sheet = workbook["questions"]
        header = [cell.value for cell in sheet[1]]
        code, value_en, options = (header.index(c) for c in ("code", "value-en", "options"))
        for row in sheet.iter_rows(min_row=2):
            if row[code].value == "comments":
                row[value_en].value = "Anything else you would like to tell us?"
                row[options].value = '{"display_rows": 12}'
        appended = [""] * len(header)
        appended[header.index("type")] = "Q"
        appended[header.index("subtype")] = "S"
        appended[code] = "email"
        appended[value_en] = "Your e-mail address"
        appended[header.index("mandatory")] = "N"
        sheet.append(appended)
        edited = tmp_path / "edited.xlsx"
        workbook.save(edited)

        result = imex.import_structure(EXAMPLE_SURVEY_ID, edited)
        assert result.ok, result.error_messages()
        after = structure_snapshot(example_store, EXAMPLE_SURVEY_ID)

        assert after["groups"][0] == before["groups"][0]
        old_questions = before["groups"][1]["questions"]
        new_questions = after["groups"][1]["questions"]
        assert [q["title"] for q in new_questions] == ["rating", "usage", "comments", "email"]
        assert new_questions[:2] == old_questions[:2]
        comments = new_questions[2]
        assert comments["texts"]["en"]["question"] == "Anything else you would like to tell us?"
        assert comments["texts"]["de"] == old_questions[2]["texts"]["de"]
        assert comments["attributes"] == {"display_rows": "12"}
        email = new_questions[3]
        assert (email["type"], email["mandatory"], email["texts"]["de"]["question"]) == ("S", "N", "")

    def test_deleted_rows_are_kept(self, imex, example_store, tmp_path):
        """Should never delete entities missing from the file."""
        before = structure_snapshot(example_store, EXAMPLE_SURVEY_ID)
        path = imex.export_structure(EXAMPLE_SURVEY_ID)
        workbook = load_workbook(path)
        sheet = workbook["questions"]
        sheet.delete_rows(3)  # age
        workbook.save(path)

        result = imex.import_structure(EXAMPLE_SURVEY_ID, path)
        assert result.ok
        after = structure_snapshot(example_store, EXAMPLE_SURVEY_ID)
        assert [q["title"] for q in after["groups"][0]["questions"]] == ["age", "gender"]
        assert after == before
