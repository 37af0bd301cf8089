"""
Shared fixtures: an empty store with one survey, and writers for
questions sheets built from column -> value dicts.
"""

import pytest

from structimex.examples import build_example_survey
from structimex.importers import StructureImport
from structimex.model import Survey
from structimex.row_codec import ColumnLayout
from structimex.store import InMemoryStore
from structimex.tabular import open_for_write

SURVEY_ID = 100


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def survey(store):
    survey = Survey(sid=SURVEY_ID, language="en")
    assert store.save(survey)
    return survey


@pytest.fixture
def example_store():
    store = InMemoryStore()
    build_example_survey(store)
    return store


@pytest.fixture
def write_sheet(tmp_path):
    """Write raw rows (header first) to a file under tmp_path."""

    def write(rows, name="sheet.csv"):
        path = tmp_path / name
        with open_for_write(path) as writer:
            for row in rows:
                writer.add_row(row)
        return path

    return write


@pytest.fixture
def questions_file(write_sheet):
    """Write a questions sheet from column -> value dicts."""

    def write(rows, languages=("en",), name="questions.csv"):
        layout = ColumnLayout(list(languages))
        return write_sheet([layout.header()] + [layout.to_cells(values) for values in rows], name)

    return write


@pytest.fixture
def run_import(store, survey, questions_file):
    """Import rows into the fixture survey; returns (importer, result)."""

    def run(rows, languages=("en",), **kwargs):
        importer = StructureImport(store, survey, questions_file(rows, languages), **kwargs)
        return importer, importer.run()

    return run
