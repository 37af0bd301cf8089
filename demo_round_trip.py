#!/usr/bin/env python3
"""
Round-Trip Demo: store → XLSX → edit → import → XLSX

Shows the full workflow:
1. Build the example survey in an in-memory store
2. Export its questions, relevances and quotas
3. Edit the questions sheet offline (here: with openpyxl)
4. Import the edited sheet back
5. Compare structure snapshots
"""

import logging
import sys
import tempfile
from pathlib import Path

import yaml
from openpyxl import load_workbook

from structimex import ImexSettings, InMemoryStore, StructureImEx, configure_logging
from structimex.examples import EXAMPLE_SURVEY_ID, build_example_survey
from structimex.serialization import structure_snapshot


def main(workdir: Path):
    configure_logging(logging.INFO)
    settings = ImexSettings(export_dir=str(workdir / "exports"), temp_dir=str(workdir / "uploads"))
    store = InMemoryStore()
    build_example_survey(store)
    imex = StructureImEx(store, settings)

    print("=" * 80)
    print("ROUND-TRIP DEMO: store → XLSX → edit → import")
    print("=" * 80)

    # =========================================================================
    # STEP 1: Export
    # =========================================================================
    print("\n1. EXPORTING...")
    paths = {kind: imex.export_structure(EXAMPLE_SURVEY_ID, kind) for kind in ("questions", "relevances", "quotas")}
    for kind, path in paths.items():
        print(f"   ✓ {kind}: {path}")
    before = structure_snapshot(store, EXAMPLE_SURVEY_ID)

    # =========================================================================
    # STEP 2: Edit offline
    # =========================================================================
    print("\n2. EDITING...")
    workbook = load_workbook(paths["questions"])
    sheet = workbook["questions"]
    header = [cell.value for cell in sheet[1]]
    code_column = header.index("code") + 1
    value_column = header.index("value-en") + 1
    for row in sheet.iter_rows(min_row=2):
        if row[code_column - 1].value == "comments":
            row[value_column - 1].value = "Anything else you would like to tell us?"
    sheet.append(["Q", "S", "email", "Your e-mail address", "", "", "Ihre E-Mail-Adresse"])
    edited = workdir / "edited.xlsx"
    workbook.save(edited)
    print(f"   ✓ Saved {edited}")

    # =========================================================================
    # STEP 3: Import
    # =========================================================================
    print("\n3. IMPORTING...")
    result = imex.import_structure(EXAMPLE_SURVEY_ID, edited)
    print(f"   ✓ {result.summary()}")
    print(yaml.safe_dump(result.to_dict(), sort_keys=False, allow_unicode=True))

    # =========================================================================
    # STEP 4: Compare
    # =========================================================================
    print("\n4. COMPARING...")
    after = structure_snapshot(store, EXAMPLE_SURVEY_ID)
    for before_group, after_group in zip(before["groups"], after["groups"]):
        old = [q["title"] for q in before_group["questions"]]
        new = [q["title"] for q in after_group["questions"]]
        name = after_group["texts"]["en"]["group_name"]
        print(f"   {name}: {old} → {new}")

    print("\n" + "=" * 80)
    print("✓ ROUND TRIP COMPLETE")
    print("=" * 80)
    return 0 if result.ok else 1


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        sys.exit(main(Path(tmp)))
