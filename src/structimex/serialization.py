"""
Serialization helpers for stores and survey structures.

Two representations:
    - store_to_dict / store_from_dict: lossless dump of an InMemoryStore,
      surrogate keys included, with JSON and YAML wrappers
    - structure_snapshot: a survey's structure keyed by business keys only,
      used to compare states across export/import cycles

This module keeps the dumped structure stable and explicit.
"""

import json
from dataclasses import asdict, fields
from typing import Any, Dict, List

import yaml

from .model import (
    ENTITY_KINDS,
    Answer,
    AnswerL10n,
    Question,
    QuestionAttribute,
    QuestionGroup,
    QuestionGroupL10n,
    QuestionL10n,
    Survey,
)
from .store import EntityStore, InMemoryStore

FORMAT_VERSION = 1

_KINDS_BY_NAME = {kind.__name__: kind for kind in ENTITY_KINDS}


def record_to_dict(record: Any) -> Dict[str, Any]:
    return asdict(record)


def record_from_dict(kind: type, d: Dict[str, Any]) -> Any:
    names = {f.name for f in fields(kind)}
    unknown = sorted(set(d) - names)
    if unknown:
        raise ValueError(f"Unknown {kind.__name__} field(s): {', '.join(unknown)}")
    return kind(**d)


def store_to_dict(store: EntityStore) -> Dict[str, Any]:
    records: Dict[str, List[Dict[str, Any]]] = {}
    for kind in ENTITY_KINDS:
        rows = store.find_all(kind, order_by=kind.PRIMARY_KEY)
        if rows:
            records[kind.__name__] = [record_to_dict(r) for r in rows]
    return {"version": FORMAT_VERSION, "records": records}


def store_from_dict(d: Dict[str, Any]) -> InMemoryStore:
    """
    Rebuild an InMemoryStore from store_to_dict() output.

    Raises:
        ValueError: On an unknown format version, kind or field
    """
    if d.get("version") != FORMAT_VERSION:
        raise ValueError(f"Unsupported store format version: {d.get('version')}")
    store = InMemoryStore()
    for name, rows in (d.get("records") or {}).items():
        kind = _KINDS_BY_NAME.get(name)
        if kind is None:
            raise ValueError(f"Unknown record kind: {name}")
        store.load(record_from_dict(kind, row) for row in rows)
    return store


def store_to_json(store: EntityStore, indent: int = 2) -> str:
    return json.dumps(store_to_dict(store), indent=indent, ensure_ascii=False)


def store_from_json(s: str) -> InMemoryStore:
    return store_from_dict(json.loads(s))


def store_to_yaml(store: EntityStore) -> str:
    return yaml.safe_dump(store_to_dict(store), sort_keys=False, allow_unicode=True)


def store_from_yaml(s: str) -> InMemoryStore:
    return store_from_dict(yaml.safe_load(s))


# ============================================================================
# Business-key snapshot
# ============================================================================


def _texts(records, *names: str) -> Dict[str, Dict[str, str]]:
    return {r.language: {n: getattr(r, n) for n in names} for r in sorted(records, key=lambda r: r.language)}


def _attributes(store: EntityStore, qid: int) -> Dict[str, str]:
    values = {}
    for attribute in store.find_all(QuestionAttribute, qid=qid):
        key = attribute.attribute if attribute.is_global else f"{attribute.attribute}@{attribute.language}"
        values[key] = attribute.value
    return dict(sorted(values.items()))


def _question_snapshot(store: EntityStore, question: Question) -> Dict[str, Any]:
    snapshot = {
        "title": question.title,
        "type": question.type,
        "relevance": question.relevance,
        "mandatory": question.mandatory,
        "same_script": question.same_script,
        "theme": question.question_theme_name,
        "texts": _texts(store.find_all(QuestionL10n, qid=question.qid), "question", "help", "script"),
        "attributes": _attributes(store, question.qid),
    }
    if question.is_subquestion:
        snapshot["scale"] = question.scale_id
        return snapshot

    children = store.find_all(Question, order_by=("scale_id", "question_order"), parent_qid=question.qid)
    snapshot["subquestions"] = [_question_snapshot(store, child) for child in children]
    snapshot["answers"] = [
        {
            "code": answer.code,
            "scale": answer.scale_id,
            "texts": _texts(store.find_all(AnswerL10n, aid=answer.aid), "answer"),
        }
        for answer in store.find_all(Answer, order_by=("scale_id", "sort_order"), qid=question.qid)
    ]
    return snapshot


def structure_snapshot(store: EntityStore, sid: int) -> Dict[str, Any]:
    """
    Describe a survey's structure without surrogate keys or order numbers.

    Sibling lists follow the stored order, so two snapshots are equal when
    the structures are equal in content and order.
    """
    survey = store.find_one(Survey, sid=sid)
    groups = []
    for group in store.find_all(QuestionGroup, order_by="group_order", sid=sid):
        questions = store.find_all(Question, order_by="question_order", sid=sid, gid=group.gid, parent_qid=0)
        groups.append(
            {
                "relevance": group.grelevance,
                "texts": _texts(store.find_all(QuestionGroupL10n, gid=group.gid), "group_name", "description"),
                "questions": [_question_snapshot(store, q) for q in questions],
            }
        )
    return {
        "sid": sid,
        "languages": survey.languages() if survey else [],
        "groups": groups,
    }


__all__ = [
    "record_to_dict",
    "record_from_dict",
    "store_to_dict",
    "store_from_dict",
    "store_to_json",
    "store_from_json",
    "store_to_yaml",
    "store_from_yaml",
    "structure_snapshot",
]
