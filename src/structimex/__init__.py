"""
structimex: survey structure import/export

Converts a hierarchical survey definition (groups, questions,
sub-questions, answers, per-language texts and typed question
attributes) to and from flat spreadsheet rows, so operators can export
a structure, edit it offline and import it back.

ARCHITECTURAL GUARANTEE:
------------------------
Entities are matched by business key (group code or name, question
code, answer code), never by surrogate id, so re-importing an exported
file updates in place and a second export reproduces the first.

Layers, leaf first:
    question_types, attributes   - registries (what exists, what is valid)
    row_codec, json_repair       - row <-> record conversion
    model, store, tabular        - collaborators (entities, persistence, files)
    mappers                      - row -> entity upserts
    exporters, importers         - engines
    relevances, quotas           - secondary sheets
    plugin                       - host facade
"""

from .config import ImexSettings, configure_logging, load_settings
from .errors import (
    ImexError,
    RowError,
    StructuralError,
    SurveyActiveError,
    UnknownExportKindError,
    UnsupportedFileError,
)
from .plugin import StructureImEx
from .report import ImportResult
from .store import EntityStore, InMemoryStore

__version__ = "0.1.0"

__all__ = [
    "StructureImEx",
    "ImexSettings",
    "load_settings",
    "configure_logging",
    "ImportResult",
    "EntityStore",
    "InMemoryStore",
    "ImexError",
    "RowError",
    "StructuralError",
    "SurveyActiveError",
    "UnknownExportKindError",
    "UnsupportedFileError",
    "__version__",
]
