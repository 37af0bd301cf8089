"""
Tests for the questions export.

These tests verify:
    - Sheet names and header layout
    - Row order: groups, questions, answers / columns, sub-questions
    - Question-only columns, theme and attribute cells
    - Default suppression and contradiction warnings
    - Reference sheets, CSV sibling files and generated file names
"""

import json
import re

import pytest
from openpyxl import load_workbook

from structimex.examples import EXAMPLE_SURVEY_ID
from structimex.exporters import ATTRIBUTES_HEADER, QuestionsExport
from structimex.model import Answer, Question, QuestionAttribute, Survey
from structimex.question_types import all_question_types
from structimex.row_codec import ColumnLayout
from structimex.tabular import open_for_read


def read_rows(path, sheet="questions"):
    workbook = load_workbook(path)
    return [["" if v is None else str(v) for v in row] for row in workbook[sheet].iter_rows(values_only=True)]


def as_dicts(rows):
    header = rows[0]
    return [dict(zip(header, row)) for row in rows[1:]]


@pytest.fixture
def survey(example_store):
    return example_store.find_one(Survey, sid=EXAMPLE_SURVEY_ID)


@pytest.fixture
def exported(example_store, survey, tmp_path):
    exporter = QuestionsExport(example_store)
    path = exporter.export(survey, path=tmp_path / "questions.xlsx")
    return exporter, path


def rows_by_code(path):
    return {row["code"]: row for row in as_dicts(read_rows(path))}


class TestLayout:
    """Test sheets, header and row order."""

    def test_sheets(self, exported):
        """Should write the data sheet and two reference sheets."""
        _, path = exported
        assert load_workbook(path).sheetnames == ["questions", "helpSheet", "possibleAttributes"]

    def test_header(self, exported):
        """Should use the survey languages, base language first."""
        _, path = exported
        assert read_rows(path)[0] == ColumnLayout(["en", "de"]).header()

    def test_row_order(self, exported):
        """Should nest answers and sub-questions under their question."""
        _, path = exported
        assert [(row["type"], row["code"]) for row in as_dicts(read_rows(path))] == [
            ("G", "1"),
            ("Q", "age"),
            ("Q", "gender"),
            ("a", "A1"),
            ("a", "A2"),
            ("a", "A3"),
            ("G", "2"),
            ("Q", "rating"),
            ("a", "1"),
            ("a", "2"),
            ("a", "3"),
            ("sq", "SQ001"),
            ("sq", "SQ002"),
            ("Q", "usage"),
            ("a", "C1"),
            ("a", "C2"),
            ("sq", "R1"),
            ("sq", "R2"),
            ("Q", "comments"),
        ]

    def test_no_warnings(self, exported):
        """Should export the example survey cleanly."""
        exporter, _ = exported
        assert exporter.warnings.messages == []

    def test_row_styles(self, exported):
        """Should style header, group and question rows."""
        _, path = exported
        sheet = load_workbook(path)["questions"]
        assert sheet["A1"].font.bold
        assert sheet["A2"].fill.fill_type == "solid"
        assert sheet["A3"].font.bold


class TestCells:
    """Test the content of individual rows."""

    def test_group_rows(self, exported):
        """Should write names, descriptions and relevance of groups."""
        _, path = exported
        groups = [row for row in as_dicts(read_rows(path)) if row["type"] == "G"]
        assert [(g["value-en"], g["value-de"], g["relevance"]) for g in groups] == [
            ("Background", "Hintergrund", ""),
            ("Satisfaction", "Zufriedenheit", "age >= 18"),
        ]

    def test_question_row(self, exported):
        """Should write type, mandatory flag and attributes by storage."""
        _, path = exported
        age = rows_by_code(path)["age"]
        assert (age["subtype"], age["mandatory"], age["same_script"], age["theme"]) == ("N", "Y", "", "")
        assert age["value-de"] == "Wie alt sind Sie?"
        assert json.loads(age["options"]) == {"max_num_value_n": "99", "min_num_value_n": "18"}
        assert age["options"] == '{"max_num_value_n": "99", "min_num_value_n": "18"}'
        assert json.loads(age["options-en"]) == {"suffix": "years"}
        assert json.loads(age["options-de"]) == {"suffix": "Jahre"}

    def test_language_specific_only(self, exported):
        """Should leave the global cell empty when only per-language values exist."""
        _, path = exported
        rating = rows_by_code(path)["rating"]
        assert rating["options"] == ""
        assert rating["options-en"] == '{"answer_width": "40"}'
        assert rating["options-de"] == '{"answer_width": "45"}'

    def test_theme(self, exported):
        """Should write non-default themes only."""
        _, path = exported
        rows = rows_by_code(path)
        assert rows["comments"]["theme"] == "longfreetext_custom"
        assert rows["gender"]["theme"] == ""

    def test_subquestion_rows(self, exported):
        """Should write relevance and texts but no question-only columns."""
        _, path = exported
        sq2 = rows_by_code(path)["SQ002"]
        assert sq2["relevance"] == "gender == 'A1'"
        assert sq2["value-de"] == "Qualität"
        assert sq2["subtype"] == sq2["mandatory"] == sq2["theme"] == ""

    def test_multiflex_columns(self, exported):
        """Should write column sub-questions as answer rows."""
        _, path = exported
        column = rows_by_code(path)["C2"]
        assert column["type"] == "a"
        assert (column["value-en"], column["value-de"]) == ("Weekend", "Wochenende")


class TestAttributeFiltering:
    """Test default suppression and storage contradictions."""

    def test_defaults_and_unknowns_skipped(self, example_store, survey, tmp_path):
        """Should leave out default-valued and unknown attributes."""
        age = example_store.find_one(Question, title="age")
        for name, value in [("hidden", "0"), ("statistics_showgraph", "1"), ("made_up", "x"), ("cssclass", "")]:
            example_store.save(QuestionAttribute(qid=age.qid, attribute=name, value=value))
        path = QuestionsExport(example_store).export(survey, path=tmp_path / "q.xlsx")
        assert json.loads(rows_by_code(path)["age"]["options"]) == {"max_num_value_n": "99", "min_num_value_n": "18"}

    def test_contradiction_warning(self, example_store, survey, tmp_path):
        """Should keep a misplaced value where it is stored and warn."""
        age = example_store.find_one(Question, title="age")
        example_store.save(QuestionAttribute(qid=age.qid, attribute="prefix", value="~"))
        exporter = QuestionsExport(example_store)
        path = exporter.export(survey, path=tmp_path / "q.xlsx")
        assert json.loads(rows_by_code(path)["age"]["options"])["prefix"] == "~"
        assert exporter.warnings.messages == [
            "Question age: attribute 'prefix' is stored globally but is language-specific"
        ]

    def test_language_copy_of_global_attribute(self, example_store, survey, tmp_path):
        """Should export a global attribute stored per language in that language's column."""
        age = example_store.find_one(Question, title="age")
        example_store.save(QuestionAttribute(qid=age.qid, attribute="hidden", value="1", language="de"))
        exporter = QuestionsExport(example_store)
        row = rows_by_code(exporter.export(survey, path=tmp_path / "q.xlsx"))["age"]
        assert json.loads(row["options-de"]) == {"hidden": "1", "suffix": "Jahre"}
        assert "hidden" not in json.loads(row["options"])
        assert exporter.warnings.messages == [
            "Question age: attribute 'hidden' is stored for language 'de' but is global"
        ]

    def test_other_scales_skipped(self, example_store, survey, tmp_path):
        """Should skip answers on scales other than 0 with a warning."""
        rating = example_store.find_one(Question, title="rating")
        example_store.save(Answer(qid=rating.qid, code="X", scale_id=1))
        exporter = QuestionsExport(example_store)
        path = exporter.export(survey, path=tmp_path / "q.xlsx")
        assert "X" not in rows_by_code(path)
        assert exporter.warnings.messages == ["Question rating: answer 'X' on scale 1 not exported"]


class TestReferenceSheets:
    """Test helpSheet and possibleAttributes."""

    def test_help_sheet(self, exported):
        """Should list every question type."""
        _, path = exported
        rows = read_rows(path, "helpSheet")
        assert rows[0] == ["code", "name"]
        assert len(rows) == 1 + len(all_question_types())
        assert ["N", "Numerical input"] in rows

    def test_possible_attributes(self, exported):
        """Should list attributes per type with their scope."""
        _, path = exported
        rows = read_rows(path, "possibleAttributes")
        assert rows[0] == ATTRIBUTES_HEADER
        by_key = {(row[0], row[1]): row for row in rows[1:]}
        assert by_key[("F", "answer_width")][2:5] == ["language", "integer", ""]
        assert by_key[("L", "answer_order")][2:5] == ["global", "singleselect", "normal"]
        assert ("T", "answer_order") not in by_key


class TestFiles:
    """Test output formats and names."""

    def test_generated_name(self, example_store, survey, tmp_path):
        """Should name files after survey, kind and a random token."""
        path = QuestionsExport(example_store).export(survey, directory=tmp_path / "out")
        assert path.parent == tmp_path / "out"
        assert re.fullmatch(r"survey_123456_questions_[0-9a-f]{4}\.xlsx", path.name)

    def test_csv(self, example_store, survey, tmp_path):
        """Should write the data sheet to the csv and reference sheets next to it."""
        path = QuestionsExport(example_store).export(survey, directory=tmp_path, extension="csv")
        assert path.suffix == ".csv"
        assert path.with_name(f"{path.stem}.helpSheet.csv").exists()
        assert path.with_name(f"{path.stem}.possibleAttributes.csv").exists()
        rows = open_for_read(path).first_sheet().rows
        assert rows == read_rows(QuestionsExport(example_store).export(survey, path=tmp_path / "q.xlsx"))
