"""
Tests for importing the questions sheet.

These tests verify:
    - The basic scenario: groups, questions, answers, sub-questions, attributes
    - Upsert on re-import, untouched and cleared attributes
    - Scan-order parent resolution and duplicate detection
    - Unknown-attribute gating, value validation, JSON repair and strict mode
    - Structural validation, language matching and the active-survey guard
    - Order indexes relative to siblings the file does not mention
"""

import pytest

from structimex.config import SurveySettings
from structimex.errors import ImportStateError, StructuralError, SurveyActiveError
from structimex.importers import ImportFromFile, ImportState, StructureImport, clear_survey_structure
from structimex.model import (
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
from structimex.store import InMemoryStore

SURVEY_ID = 100


def group_row(name, code=""):
    return {"type": "G", "code": code, "value-en": name}


def question_row(code, subtype="T", text="", **cells):
    row = {"type": "Q", "subtype": subtype, "code": code, "value-en": text or code, "mandatory": "N"}
    row.update(cells)
    return row


def subquestion_row(code, text="", **cells):
    row = {"type": "sq", "code": code, "value-en": text or code}
    row.update(cells)
    return row


def answer_row(code, text=""):
    return {"type": "a", "code": code, "value-en": text or code}


def find_question(store, title, parent_qid=0, scale_id=0):
    return store.find_one(Question, title=title, parent_qid=parent_qid, scale_id=scale_id)


def stored_attributes(store, qid):
    return sorted((a.attribute, a.language, a.value) for a in store.find_all(QuestionAttribute, qid=qid))


class TestBasicImport:
    """Test importing a small survey into an empty structure."""

    @pytest.fixture
    def imported(self, run_import):
        rows = [
            group_row("Intro"),
            question_row(
                "age", "N", "Age?", mandatory="Y",
                options='{"min_num_value_n": 18}', **{"options-en": '{"suffix": "years"}'}
            ),
            question_row("color", "L", "Color?", **{"help-en": "Pick one"}),
            answer_row("A1", "Red"),
            answer_row("A2", "Blue"),
            question_row("matrix", "F", "Rate"),
            subquestion_row("SQ1", "Speed", relevance="age > 20"),
            subquestion_row("SQ2", "Price"),
            answer_row("1", "Bad"),
        ]
        return run_import(rows)

    def test_counts(self, imported):
        """Should apply every row without errors or warnings."""
        importer, result = imported
        assert result.ok
        assert (result.processed_count, result.success_count, result.failed_count) == (9, 9, 0)
        assert result.warnings == []
        assert importer.state is ImportState.DONE

    def test_input_file_removed(self, imported):
        """Should delete the input file once done."""
        importer, _ = imported
        assert not importer.path.exists()

    def test_group(self, store, imported):
        """Should create the group with its localized name."""
        (group,) = store.find_all(QuestionGroup, sid=SURVEY_ID)
        assert group.group_order == 1
        l10n = store.find_one(QuestionGroupL10n, gid=group.gid, language="en")
        assert l10n.group_name == "Intro"

    def test_questions(self, store, imported):
        """Should create questions in file order within the group."""
        questions = store.find_all(Question, order_by="question_order", sid=SURVEY_ID, parent_qid=0)
        assert [(q.title, q.type, q.question_order) for q in questions] == [
            ("age", "N", 1),
            ("color", "L", 2),
            ("matrix", "F", 3),
        ]
        color = find_question(store, "color")
        l10n = store.find_one(QuestionL10n, qid=color.qid, language="en")
        assert (l10n.question, l10n.help) == ("Color?", "Pick one")

    def test_attributes(self, store, imported):
        """Should store attributes by the column they came from."""
        age = find_question(store, "age")
        assert age.mandatory == "Y"
        assert stored_attributes(store, age.qid) == [
            ("min_num_value_n", "", "18"),
            ("suffix", "en", "years"),
        ]

    def test_answers(self, store, imported):
        """Should create answers in order with their texts."""
        color = find_question(store, "color")
        answers = store.find_all(Answer, order_by="sort_order", qid=color.qid)
        assert [(a.code, a.sort_order, a.scale_id) for a in answers] == [("A1", 1, 0), ("A2", 2, 0)]
        texts = [store.find_one(AnswerL10n, aid=a.aid, language="en").answer for a in answers]
        assert texts == ["Red", "Blue"]

    def test_subquestions(self, store, imported):
        """Should create sub-questions under the most recent question."""
        matrix = find_question(store, "matrix")
        children = store.find_all(Question, order_by="question_order", parent_qid=matrix.qid)
        assert [(q.title, q.type, q.mandatory, q.question_order) for q in children] == [
            ("SQ1", "F", "N", 1),
            ("SQ2", "F", "N", 2),
        ]
        assert children[0].gid == matrix.gid
        assert children[0].relevance == "age > 20"
        assert [a.code for a in store.find_all(Answer, qid=matrix.qid)] == ["1"]


class TestReimport:
    """Test importing over an existing structure."""

    def test_update_in_place(self, store, run_import):
        """Should update existing records instead of duplicating them."""
        run_import([group_row("Intro"), question_row("age", "N", "Age?", options='{"min_num_value_n": 18}')])
        qid = find_question(store, "age").qid

        _, result = run_import([group_row("Intro"), question_row("age", "N", "Your age?", options='{"min_num_value_n": 21}')])
        assert result.ok
        assert store.count(QuestionGroup) == 1
        assert store.count(QuestionGroupL10n) == 1
        assert store.count(Question) == 1
        assert find_question(store, "age").qid == qid
        assert store.find_one(QuestionL10n, qid=qid, language="en").question == "Your age?"
        assert stored_attributes(store, qid) == [("min_num_value_n", "", "21")]

    def test_omitted_null_and_empty(self, store, run_import):
        """Should leave omitted and null attributes alone and clear ''."""
        run_import([
            group_row("Intro"),
            question_row("age", "N", options='{"min_num_value_n": 18, "max_num_value_n": 99, "placeholder": "x"}'),
        ])
        run_import([
            group_row("Intro"),
            question_row("age", "N", options='{"min_num_value_n": null, "max_num_value_n": ""}'),
        ])
        qid = find_question(store, "age").qid
        assert stored_attributes(store, qid) == [
            ("max_num_value_n", "", ""),
            ("min_num_value_n", "", "18"),
            ("placeholder", "", "x"),
        ]

    def test_type_change_keeps_identity(self, store, run_import):
        """Should change a question's type in place."""
        run_import([group_row("Intro"), question_row("q1", "T")])
        qid = find_question(store, "q1").qid
        run_import([group_row("Intro"), question_row("q1", "S")])
        assert find_question(store, "q1").type == "S"
        assert find_question(store, "q1").qid == qid

    def test_clear_existing(self, store, run_import):
        """Should delete the old structure, quota members included."""
        run_import([group_row("Intro"), question_row("old")])
        old = find_question(store, "old")
        store.save(QuotaMember(sid=SURVEY_ID, quota_id=1, qid=old.qid, code="A1"))

        _, result = run_import([group_row("Other"), question_row("new")], clear_existing=True)
        assert result.ok
        assert [q.title for q in store.find_all(Question)] == ["new"]
        assert [g.group_name for g in store.find_all(QuestionGroupL10n)] == ["Other"]
        assert store.count(QuotaMember) == 0
        assert store.count(QuestionL10n, qid=old.qid) == 0

    def test_clear_survey_structure_only_touches_survey(self, store, survey):
        """Should leave other surveys alone."""
        store.save(QuestionGroup(sid=SURVEY_ID))
        store.save(QuestionGroup(sid=999))
        assert clear_survey_structure(store, SURVEY_ID) == 1
        assert [g.sid for g in store.find_all(QuestionGroup)] == [999]


class TestParents:
    """Test scan-order parent resolution and duplicates."""

    def test_orphan_subquestion(self, store, run_import):
        """Should reject a sub-question with no question above it."""
        _, result = run_import([group_row("Intro"), subquestion_row("SQ1")])
        assert result.error_messages() == ["Row 3: Sub-question 'SQ1' has no parent question"]
        assert (result.success_count, result.failed_count) == (1, 1)
        assert store.count(Question) == 0

    def test_orphan_question(self, run_import):
        """Should reject a question with no group above it."""
        _, result = run_import([question_row("q1")])
        assert result.error_messages() == ["Row 2: Question 'q1' has no parent group"]

    def test_children_of_failed_question(self, store, run_import):
        """Should not attach children to an earlier question."""
        rows = [group_row("Intro"), question_row("ok"), question_row("bad", "W"), subquestion_row("SQ1")]
        _, result = run_import(rows)
        assert result.error_messages() == [
            "Row 4: Unknown question type 'W' for question bad",
            "Row 5: Sub-question 'SQ1' has no parent question",
        ]
        assert store.count(Question, parent_qid=find_question(store, "ok").qid) == 0

    def test_questions_follow_latest_group(self, store, run_import):
        """Should attach questions to the most recent group row."""
        run_import([group_row("One"), question_row("q1"), group_row("Two"), question_row("q2")])
        one, two = store.find_all(QuestionGroup, order_by="group_order")
        assert find_question(store, "q1").gid == one.gid
        assert find_question(store, "q2").gid == two.gid
        assert two.group_order == 2

    def test_duplicates(self, run_import):
        """Should reject duplicate keys within one file."""
        rows = [
            group_row("Intro"),
            question_row("q1", "F"),
            subquestion_row("SQ1"),
            subquestion_row("SQ1"),
            answer_row("A1"),
            answer_row("A1"),
            question_row("q1"),
            group_row("Intro"),
        ]
        _, result = run_import(rows)
        assert result.error_messages() == [
            "Row 5: Duplicate sub-question code 'SQ1' for question q1",
            "Row 7: Duplicate answer code 'A1' for question q1",
            "Row 8: Duplicate question code 'q1' in import file",
            "Row 9: Duplicate group 'Intro' in import file",
        ]

    def test_answer_and_subquestion_codes_independent(self, store, run_import):
        """Should accept answers and sub-questions that share codes under one question."""
        rows = [
            group_row("Intro"),
            question_row("arr", "F"),
            answer_row("1"),
            answer_row("2"),
            subquestion_row("1"),
            subquestion_row("2"),
        ]
        _, result = run_import(rows)
        assert result.ok, result.error_messages()
        assert result.processed_count == 6
        arr = find_question(store, "arr")
        assert [a.code for a in store.find_all(Answer, order_by="sort_order", qid=arr.qid)] == ["1", "2"]
        assert [q.title for q in store.find_all(Question, order_by="question_order", parent_qid=arr.qid)] == [
            "1",
            "2",
        ]

    def test_empty_codes(self, run_import):
        """Should reject rows without a code."""
        _, result = run_import([group_row(""), group_row("Intro"), question_row(""), answer_row("")])
        assert result.error_messages() == [
            "Row 2: Group has neither a code nor a name",
            "Row 4: Question code is empty",
            "Row 5: Answer code is empty",
        ]


class TestQuestionFields:
    """Test question defaults: mandatory, theme and special row kinds."""

    def test_mandatory(self, store, run_import):
        """Should upper-case valid flags and default anything else to Y."""
        rows = [
            group_row("Intro"),
            question_row("m1", mandatory="s"),
            question_row("m2", mandatory=""),
            question_row("m3", mandatory="x"),
            question_row("m4", mandatory="N"),
        ]
        run_import(rows)
        assert [find_question(store, t).mandatory for t in ("m1", "m2", "m3", "m4")] == ["S", "Y", "Y", "N"]

    def test_theme(self, store, run_import):
        """Should take the theme column, then question_template, then core."""
        rows = [
            group_row("Intro"),
            question_row("t1", theme="custom"),
            question_row("t2", options='{"question_template": "from_attribute"}'),
            question_row("t3"),
        ]
        _, result = run_import(rows)
        assert result.warnings == []
        themes = [find_question(store, t).question_theme_name for t in ("t1", "t2", "t3")]
        assert themes == ["custom", "from_attribute", "core"]
        assert stored_attributes(store, find_question(store, "t2").qid) == []

    def test_same_script(self, store, run_import):
        """Should read same_script flags."""
        run_import([group_row("Intro"), question_row("s1", same_script="Y"), question_row("s2")])
        assert find_question(store, "s1").same_script
        assert not find_question(store, "s2").same_script

    def test_multiflex_columns(self, store, run_import):
        """Should turn answer rows of multi-flex questions into scale 1 sub-questions."""
        rows = [
            group_row("Intro"),
            question_row("usage", ":"),
            answer_row("C1", "Column 1"),
            answer_row("C2", "Column 2"),
            subquestion_row("R1"),
        ]
        _, result = run_import(rows)
        assert result.ok
        usage = find_question(store, "usage")
        columns = store.find_all(Question, order_by="question_order", parent_qid=usage.qid, scale_id=1)
        assert [(c.title, c.type, c.question_order) for c in columns] == [("C1", "T", 1), ("C2", "T", 2)]
        assert store.find_one(QuestionL10n, qid=columns[0].qid, language="en").question == "Column 1"
        assert find_question(store, "R1", usage.qid).type == ":"
        assert store.count(Answer) == 0

    def test_answers_on_type_without_answers(self, store, run_import):
        """Should store the answer and warn."""
        _, result = run_import([group_row("Intro"), question_row("comments", "T"), answer_row("A1")])
        assert result.ok
        assert result.warnings == [
            "Row 4: question comments of type 'T' does not use answer options; answer 'A1' stored anyway"
        ]
        assert store.count(Answer) == 1

    def test_invalid_answer_code(self, run_import):
        """Should report the store's validation message."""
        _, result = run_import([group_row("Intro"), question_row("q1", "L"), answer_row("TOOLONG")])
        assert result.error_messages() == [
            "Row 4: Unable to save Answer: code: Answer code 'TOOLONG' must be 1-5 letters, digits or underscores"
        ]


class TestAttributeHandling:
    """Test attribute gating, validation and storage."""

    def test_unknown_attribute_dropped(self, store, run_import):
        """Should drop unknown attributes with a warning by default."""
        _, result = run_import([group_row("Intro"), question_row("q1", options='{"made_up": "x", "hidden": "1"}')])
        assert result.ok
        assert result.warnings == ["Row 3, question q1: unknown attribute 'made_up' for question type 'T' ignored"]
        assert stored_attributes(store, find_question(store, "q1").qid) == [("hidden", "", "1")]

    def test_unknown_attribute_imported(self, store, run_import):
        """Should store unknown attributes verbatim when enabled."""
        settings = SurveySettings(import_unknown_attributes=True)
        _, result = run_import(
            [group_row("Intro"), question_row("q1", options='{"made_up": [1, 2], "custom": "x"}')],
            settings=settings,
        )
        assert result.ok
        assert result.warnings == []
        assert stored_attributes(store, find_question(store, "q1").qid) == [
            ("custom", "", "x"),
            ("made_up", "", "[1, 2]"),
        ]

    def test_invalid_value_fails_row(self, store, run_import):
        """Should fail the row before writing anything."""
        _, result = run_import([group_row("Intro"), question_row("q1", "F", options='{"answer_width": 500}')])
        assert result.error_messages() == ["Row 3: Invalid value '500' for attribute 'answer_width' of question q1"]
        assert store.count(Question) == 0
        assert store.count(QuestionAttribute) == 0

    def test_misplaced_attributes_warn(self, store, run_import):
        """Should keep column placement and report contradictions."""
        rows = [group_row("Intro"), question_row("q1", "N", options='{"suffix": "kg"}', **{"options-en": '{"hidden": "1"}'})]
        _, result = run_import(rows)
        assert result.warnings == [
            "Row 3, question q1: language-specific attribute 'suffix' found in options; stored globally",
            "Row 3, question q1: global attribute 'hidden' found in options-en; stored for that language",
        ]
        assert stored_attributes(store, find_question(store, "q1").qid) == [
            ("hidden", "en", "1"),
            ("suffix", "", "kg"),
        ]

    def test_storage_forms_exclusive(self, store, run_import):
        """Should delete the global value when a per-language one is written."""
        run_import([group_row("Intro"), question_row("q1", "N", options='{"suffix": "kg"}')])
        run_import([group_row("Intro"), question_row("q1", "N", **{"options-en": '{"suffix": "kg"}'})])
        assert stored_attributes(store, find_question(store, "q1").qid) == [("suffix", "en", "kg")]

    def test_global_and_language_in_one_row(self, store, run_import):
        """Should keep the per-language values and warn."""
        rows = [group_row("Intro"), question_row("q1", "N", options='{"suffix": "x"}', **{"options-en": '{"suffix": "y"}'})]
        _, result = run_import(rows)
        assert result.warnings == [
            "Row 3, question q1: attribute 'suffix' given both globally and per language; the per-language values win"
        ]
        assert stored_attributes(store, find_question(store, "q1").qid) == [("suffix", "en", "y")]

    def test_subquestion_attributes(self, store, run_import):
        """Should validate sub-question attributes against the parent type."""
        rows = [group_row("Intro"), question_row("q1", "F"), subquestion_row("SQ1", options='{"random_order": "1"}')]
        _, result = run_import(rows)
        assert result.ok
        subquestion = find_question(store, "SQ1", find_question(store, "q1").qid)
        assert stored_attributes(store, subquestion.qid) == [("random_order", "", "1")]


class TestMalformedJson:
    """Test repaired and unreadable attribute cells."""

    def test_repaired(self, store, run_import):
        """Should import repaired JSON with a warning."""
        _, result = run_import([group_row("Intro"), question_row("q1", options="{hidden: '1'}")])
        assert result.ok
        assert result.warnings == ["Row 3: repaired malformed JSON in column 'options' (single_quotes, bare_keys)"]
        assert stored_attributes(store, find_question(store, "q1").qid) == [("hidden", "", "1")]

    def test_unreadable_lenient(self, store, run_import):
        """Should ignore the cell and keep the row."""
        _, result = run_import([group_row("Intro"), question_row("q1", options="[1, 2]")])
        assert result.ok
        assert result.warnings == [
            "Row 3: ignored unreadable JSON in column 'options': Attribute cell is not a JSON object"
        ]
        assert find_question(store, "q1") is not None

    def test_unreadable_strict(self, store, run_import):
        """Should stop the import and keep the file."""
        rows = [group_row("Intro"), question_row("q1", options="[1, 2]"), question_row("q2")]
        importer, result = run_import(rows, settings=SurveySettings(strict=True))
        assert result.error_messages() == [
            "Row 3: Unreadable JSON in column 'options': Attribute cell is not a JSON object"
        ]
        assert (result.processed_count, result.success_count, result.failed_count) == (2, 1, 1)
        assert importer.state is ImportState.FAILED
        assert importer.path.exists()
        assert find_question(store, "q2") is None


class TestSaveFailures:
    """Test store refusals."""

    ROWS = [group_row("Intro"), question_row("1abc"), question_row("fine")]
    MESSAGE = (
        "Row 3: Unable to save Question: title: Question code '1abc' may only contain "
        "letters, digits and underscores"
    )

    def test_lenient(self, store, run_import):
        """Should record the row error and carry on."""
        importer, result = run_import(self.ROWS)
        assert result.error_messages() == [self.MESSAGE]
        assert importer.state is ImportState.DONE
        assert find_question(store, "fine") is not None

    def test_strict(self, store, run_import):
        """Should stop at the first save failure."""
        importer, result = run_import(self.ROWS, settings=SurveySettings(strict=True))
        assert result.error_messages() == [self.MESSAGE]
        assert importer.state is ImportState.FAILED
        assert importer.path.exists()
        assert find_question(store, "fine") is None


class RefusingStore(InMemoryStore):
    """Refuse any record whose relevance is 'refuse'."""

    def save(self, record):
        if "refuse" in (getattr(record, "relevance", ""), getattr(record, "grelevance", "")):
            self.last_errors = ["refused"]
            return False
        return super().save(record)


class TestRefusedSaves:
    """Test that a refused save leaves the lookup index untouched."""

    @pytest.fixture
    def store(self):
        return RefusingStore()

    def test_index_keeps_saved_state(self, store, run_import):
        """Should keep the last saved values for later rows when a save is refused."""
        _, first = run_import([group_row("Intro"), question_row("q1")])
        assert first.ok, first.error_messages()
        gid = store.find_one(QuestionGroup).gid

        rows = [
            {"type": "G", "code": str(gid), "value-en": "Intro", "relevance": "refuse"},
            group_row("Other"),
            question_row("q1", "L", relevance="refuse"),
        ]
        importer, result = run_import(rows)
        assert result.error_messages() == [
            "Row 2: Unable to save QuestionGroup: refused",
            "Row 4: Unable to save Question: refused",
        ]

        index = importer.context.index
        assert index.groups_by_id[gid].grelevance == ""
        assert index.questions["q1"].type == "T"
        assert index.questions["q1"].gid == gid
        stored = find_question(store, "q1")
        assert (stored.type, stored.gid, stored.relevance) == ("T", gid, "")


class TestStructuralValidation:
    """Test file-level checks."""

    def test_no_data(self, store, run_import):
        """Should refuse a file with only a header."""
        importer, result = run_import([])
        assert result.error_messages() == ["No data to import"]
        assert importer.state is ImportState.FAILED

    def test_no_language_columns(self, store, survey, write_sheet):
        """Should require value-{l} columns."""
        path = write_sheet([["type", "code"], ["G", "1"]])
        result = StructureImport(store, survey, path).run()
        assert result.error_messages() == ["No language columns found; expected headers like 'value-en'"]

    def test_invalid_row_types(self, store, run_import):
        """Should list every bad row and write nothing."""
        rows = [group_row("Intro"), {"type": "X", "code": "x"}, question_row("q1"), {"type": "", "code": "y"}]
        importer, result = run_import(rows)
        assert result.error_messages() == ["Invalid row type 'X' on row 3", "Invalid row type '' on row 5"]
        assert store.count(QuestionGroup) == 0
        assert importer.path.exists()

    def test_validate_raises(self, store, survey, questions_file):
        """Should raise StructuralError from validate()."""
        importer = StructureImport(store, survey, questions_file([], languages=("fr",)))
        importer.prepare()
        with pytest.raises(StructuralError):
            importer.validate()

    def test_no_shared_language(self, run_import):
        """Should refuse files written for other languages."""
        _, result = run_import([{"type": "G", "value-fr": "Intro"}], languages=("fr",))
        assert result.error_messages() == ["None of the file languages (fr) belong to survey 100 (en)"]


class TestLanguages:
    """Test language matching."""

    @pytest.fixture
    def bilingual(self, store):
        survey = Survey(sid=200, language="en", additional_languages=["de"])
        store.save(survey)
        return survey

    def test_extra_languages_ignored(self, store, bilingual, questions_file):
        """Should warn about extra languages and write survey languages only."""
        rows = [
            {"type": "G", "value-en": "Intro", "value-de": "Einleitung", "value-fr": "Introduction"},
            {"type": "Q", "subtype": "T", "code": "q1", "value-en": "Hi", "value-de": "Hallo", "value-fr": "Salut"},
        ]
        path = questions_file(rows, languages=("en", "de", "fr"))
        result = StructureImport(store, bilingual, path).run()
        assert result.warnings == ["Ignoring columns for languages not in survey 200: fr"]
        qid = find_question(store, "q1").qid
        assert sorted(l.language for l in store.find_all(QuestionL10n, qid=qid)) == ["de", "en"]

    def test_subset_of_languages(self, store, bilingual, questions_file):
        """Should only touch the languages present in the file."""
        path = questions_file([{"type": "G", "value-en": "Intro"}])
        result = StructureImport(store, bilingual, path).run()
        assert result.ok
        assert [l.language for l in store.find_all(QuestionGroupL10n)] == ["en"]

    def test_header_case(self, store, survey, write_sheet):
        """Should match language columns case-insensitively."""
        path = write_sheet([["Type", "Subtype", "Code", "Value-EN"], ["G", "", "", "Intro"], ["Q", "T", "q1", "Text"]])
        result = StructureImport(store, survey, path).run()
        assert result.ok
        assert store.find_one(QuestionGroupL10n, language="en").group_name == "Intro"


class TestOrdering:
    """Test order indexes next to pre-existing records."""

    def test_after_untouched_siblings(self, store, survey, run_import):
        """Should number file questions after questions the file leaves alone."""
        group = QuestionGroup(sid=SURVEY_ID, group_order=1)
        store.save(group)
        store.save(QuestionGroupL10n(gid=group.gid, language="en", group_name="Intro"))
        for order, title in enumerate(["old1", "old2"], start=1):
            store.save(Question(sid=SURVEY_ID, gid=group.gid, title=title, question_order=order))

        _, result = run_import([group_row("Intro", str(group.gid)), question_row("new1"), question_row("old2")])
        assert result.ok
        orders = {q.title: q.question_order for q in store.find_all(Question)}
        assert orders == {"old1": 1, "new1": 2, "old2": 3}
        assert store.count(QuestionGroup) == 1

    def test_answers_after_untouched(self, store, run_import):
        """Should append new answers after answers the file leaves out."""
        run_import([group_row("Intro"), question_row("q1", "L"), answer_row("A1"), answer_row("A2")])
        run_import([group_row("Intro"), question_row("q1", "L"), answer_row("A3")])
        qid = find_question(store, "q1").qid
        assert [(a.code, a.sort_order) for a in store.find_all(Answer, order_by="sort_order", qid=qid)] == [
            ("A1", 1),
            ("A2", 2),
            ("A3", 3),
        ]


class TestImportLifecycle:
    """Test the state machine and file handling."""

    def test_out_of_order_calls(self, store, survey, questions_file):
        """Should refuse steps called out of order."""
        importer = StructureImport(store, survey, questions_file([group_row("Intro")]))
        with pytest.raises(ImportStateError):
            importer.process()
        importer.prepare()
        with pytest.raises(ImportStateError):
            importer.prepare()
        importer.validate()
        assert importer.state is ImportState.VALIDATED
        importer.process()
        assert importer.state is ImportState.DONE

    def test_active_survey(self, store, survey, questions_file):
        """Should refuse to touch an active survey and keep the file."""
        survey.active = True
        importer = StructureImport(store, survey, questions_file([group_row("Intro")]), clear_existing=True)
        with pytest.raises(SurveyActiveError, match="Survey 100 is active"):
            importer.run()
        assert importer.state is ImportState.FAILED
        assert importer.path.exists()
        assert store.count(QuestionGroup) == 0

    def test_load_file(self, tmp_path):
        """Should copy the upload under a unique name."""
        upload = tmp_path / "upload.CSV"
        upload.write_text("type\nG\n", encoding="utf-8")
        first = ImportFromFile.load_file(upload, tmp_path / "temp", "questions")
        second = ImportFromFile.load_file(upload, tmp_path / "temp", "questions")
        assert first != second
        assert first.parent == tmp_path / "temp"
        assert first.name.startswith("questions_")
        assert first.suffix == ".csv"
        assert first.read_text(encoding="utf-8") == "type\nG\n"
        assert upload.exists()
