"""
Tests for the in-memory entity store.
"""

import pytest

from structimex.model import Question, QuestionGroup, Survey
from structimex.store import InMemoryStore


class TestInMemoryStore:
    """Test InMemoryStore behaviour."""

    def test_save_assigns_sequential_keys(self):
        """Should assign keys per kind on first save."""
        store = InMemoryStore()
        first, second = QuestionGroup(sid=1), QuestionGroup(sid=1)
        assert store.save(first) and store.save(second)
        assert (first.gid, second.gid) == (1, 2)

    def test_explicit_key_moves_counter(self):
        """Should not reuse explicit keys."""
        store = InMemoryStore()
        store.save(QuestionGroup(gid=10, sid=1))
        group = QuestionGroup(sid=1)
        store.save(group)
        assert group.gid == 11

    def test_records_are_copied(self):
        """Should isolate stored records from caller mutation."""
        store = InMemoryStore()
        group = QuestionGroup(sid=1, grelevance="1")
        store.save(group)
        group.grelevance = "changed"
        found = store.find_one(QuestionGroup, gid=group.gid)
        assert found.grelevance == "1"
        found.grelevance = "also changed"
        assert store.get(QuestionGroup, group.gid).grelevance == "1"

    def test_rejected_save(self):
        """Should refuse invalid records and expose the reasons."""
        store = InMemoryStore()
        question = Question(title="ok")
        assert not store.save(question)
        assert store.last_errors == ["gid: Question must belong to a group"]
        assert question.qid is None
        assert store.count(Question) == 0

    def test_find_all_order_by(self):
        """Should sort by the given fields, then by key."""
        store = InMemoryStore()
        for order in (2, 1, 2):
            store.save(QuestionGroup(sid=1, group_order=order))
        store.save(QuestionGroup(sid=2, group_order=0))
        ordered = store.find_all(QuestionGroup, order_by="group_order", sid=1)
        assert [(g.group_order, g.gid) for g in ordered] == [(1, 2), (2, 1), (2, 3)]

    def test_delete_all(self):
        """Should delete matching records only."""
        store = InMemoryStore()
        for sid in (1, 1, 2):
            store.save(QuestionGroup(sid=sid))
        assert store.delete_all(QuestionGroup, sid=1) == 2
        assert store.count(QuestionGroup) == 1
        assert store.kinds() == [QuestionGroup]

    def test_load_keeps_keys(self):
        """Should keep surrogate keys and fail loudly on invalid records."""
        store = InMemoryStore()
        store.load([Survey(sid=42, language="en")])
        assert store.get(Survey, 42) is not None
        with pytest.raises(ValueError):
            store.load([Question(qid=3, title="q")])
