"""
Example survey builder.

Builds a small two-language (en, de) customer feedback survey covering
the shapes the converter has to handle: a numeric question with
per-language suffixes, a radio list with answers, an array with
sub-questions and answers, a multi-flex array with column sub-questions,
a free text question with a theme, and one quota.
"""

from typing import Dict, Iterable, Tuple

from .model import (
    Answer,
    AnswerL10n,
    Question,
    QuestionAttribute,
    QuestionGroup,
    QuestionGroupL10n,
    QuestionL10n,
    Quota,
    QuotaLanguageSetting,
    QuotaMember,
    Survey,
)
from .store import EntityStore

EXAMPLE_SURVEY_ID = 123456

Texts = Dict[str, str]


class _Builder:
    def __init__(self, store: EntityStore, survey: Survey):
        self.store = store
        self.survey = survey
        self._group_order = 0
        self._question_order: Dict[int, int] = {}

    def save(self, record):
        if not self.store.save(record):
            raise ValueError(f"Cannot save {type(record).__name__}: {'; '.join(self.store.last_errors)}")
        return record

    def group(self, names: Texts, relevance: str = "") -> QuestionGroup:
        self._group_order += 1
        group = self.save(
            QuestionGroup(sid=self.survey.sid, group_order=self._group_order, grelevance=relevance)
        )
        for language, name in names.items():
            self.save(QuestionGroupL10n(gid=group.gid, language=language, group_name=name))
        return group

    def question(
        self,
        group: QuestionGroup,
        title: str,
        question_type: str,
        texts: Texts,
        parent: Question = None,
        scale_id: int = 0,
        mandatory: str = "N",
        **fields,
    ) -> Question:
        scope = (parent.qid, scale_id) if parent else (group.gid, -1)
        order = self._question_order.get(scope, 0) + 1
        self._question_order[scope] = order
        question = self.save(
            Question(
                sid=self.survey.sid,
                gid=group.gid,
                parent_qid=parent.qid if parent else 0,
                type=question_type,
                title=title,
                question_order=order,
                scale_id=scale_id,
                mandatory="N" if parent else mandatory,
                **fields,
            )
        )
        for language, text in texts.items():
            self.save(QuestionL10n(qid=question.qid, language=language, question=text))
        return question

    def answers(self, question: Question, options: Iterable[Tuple[str, Texts]]) -> None:
        for order, (code, texts) in enumerate(options, start=1):
            answer = self.save(Answer(qid=question.qid, code=code, sort_order=order))
            for language, text in texts.items():
                self.save(AnswerL10n(aid=answer.aid, language=language, answer=text))

    def attribute(self, question: Question, name: str, value: str, language: str = "") -> None:
        self.save(QuestionAttribute(qid=question.qid, attribute=name, value=value, language=language))


def build_example_survey(store: EntityStore, sid: int = EXAMPLE_SURVEY_ID) -> Survey:
    survey = Survey(sid=sid, language="en", additional_languages=["de"])
    b = _Builder(store, survey)
    b.save(survey)

    background = b.group({"en": "Background", "de": "Hintergrund"})

    age = b.question(background, "age", "N", {"en": "How old are you?", "de": "Wie alt sind Sie?"}, mandatory="Y")
    b.attribute(age, "min_num_value_n", "18")
    b.attribute(age, "max_num_value_n", "99")
    b.attribute(age, "suffix", "years", "en")
    b.attribute(age, "suffix", "Jahre", "de")

    gender = b.question(
        background, "gender", "L", {"en": "What is your gender?", "de": "Was ist Ihr Geschlecht?"}, mandatory="Y"
    )
    b.answers(
        gender,
        [
            ("A1", {"en": "Female", "de": "Weiblich"}),
            ("A2", {"en": "Male", "de": "Männlich"}),
            ("A3", {"en": "Diverse", "de": "Divers"}),
        ],
    )
    b.attribute(gender, "display_columns", "3")

    satisfaction = b.group({"en": "Satisfaction", "de": "Zufriedenheit"}, relevance="age >= 18")

    rating = b.question(
        satisfaction, "rating", "F", {"en": "How satisfied are you with...", "de": "Wie zufrieden sind Sie mit..."}
    )
    b.question(satisfaction, "SQ001", "F", {"en": "Price", "de": "Preis"}, parent=rating)
    b.question(
        satisfaction, "SQ002", "F", {"en": "Quality", "de": "Qualität"}, parent=rating, relevance="gender == 'A1'"
    )
    b.answers(
        rating,
        [
            ("1", {"en": "Unhappy", "de": "Unzufrieden"}),
            ("2", {"en": "Neutral", "de": "Neutral"}),
            ("3", {"en": "Happy", "de": "Zufrieden"}),
        ],
    )
    b.attribute(rating, "answer_width", "40", "en")
    b.attribute(rating, "answer_width", "45", "de")

    usage = b.question(
        satisfaction, "usage", ":", {"en": "Hours per week", "de": "Stunden pro Woche"}
    )
    b.question(satisfaction, "R1", ":", {"en": "At home", "de": "Zu Hause"}, parent=usage)
    b.question(satisfaction, "R2", ":", {"en": "At work", "de": "Bei der Arbeit"}, parent=usage)
    b.question(satisfaction, "C1", "T", {"en": "Weekdays", "de": "Wochentags"}, parent=usage, scale_id=1)
    b.question(satisfaction, "C2", "T", {"en": "Weekend", "de": "Wochenende"}, parent=usage, scale_id=1)
    b.attribute(usage, "multiflexible_max", "40")

    comments = b.question(
        satisfaction,
        "comments",
        "T",
        {"en": "Anything else?", "de": "Sonst noch etwas?"},
        question_theme_name="longfreetext_custom",
    )
    b.attribute(comments, "display_rows", "8")

    quota = b.save(Quota(sid=sid, name="Women", qlimit=100))
    b.save(QuotaMember(sid=sid, quota_id=quota.id, qid=gender.qid, code="A1"))
    b.save(QuotaLanguageSetting(quota_id=quota.id, language="en", message="Quota reached"))
    b.save(QuotaLanguageSetting(quota_id=quota.id, language="de", message="Quote erreicht"))
    return survey


__all__ = ["build_example_survey", "EXAMPLE_SURVEY_ID"]
