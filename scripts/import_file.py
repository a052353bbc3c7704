#!/usr/bin/env python3
"""
Run a Wodify performance export through preview (and optionally confirm). Uses the wodlog package directly
(no MCP server needed). Usage: python scripts/import_file.py <export.csv> [user_id] [--confirm]
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

# Project root = parent of scripts/
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from wodlog.errors import WodlogError
from wodlog.ingest import confirm_import_impl, preview_import_impl
from wodlog.storage import Storage

DEFAULT_DB = ROOT / "wodlog_test.db"


def main() -> None:
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    confirm = "--confirm" in sys.argv[1:]
    if not args:
        print(__doc__)
        sys.exit(1)
    path = Path(args[0])
    if not path.is_file():
        print(f"Not a file: {path}")
        sys.exit(1)
    user_id = int(args[1]) if len(args) > 1 else 1

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    content = path.read_bytes()
    storage = Storage(DEFAULT_DB)

    print(f"\n{'='*60}")
    print(f"FILE: {path.name}  (user_id={user_id})")
    print("=" * 60)

    preview = preview_import_impl(content, user_id, catalog=storage)
    print(f"Rows: total={preview.total_rows}  valid={preview.valid_rows}  invalid={preview.invalid_rows}")
    print(f"Workout dates: {preview.unique_workout_dates}  performances: {preview.performances_to_create}")
    if preview.errors:
        print("Errors:")
        for err in preview.errors[:20]:
            print(f"  - row {err.row}: {err.message}")
    print(f"New movements ({preview.movements_to_create}): {', '.join(preview.new_movements) or '-'}")
    print(f"New WODs ({preview.wods_to_create}): {', '.join(preview.new_wods) or '-'}")
    for s in preview.workout_summary[:10]:
        pr = "  PR" if s.has_prs else ""
        print(f"  {s.date}  movements={s.movement_count}  wods={s.wod_count}  [{', '.join(s.component_types)}]{pr}")

    if confirm:
        try:
            result = confirm_import_impl(content, user_id, catalog=storage)
        except WodlogError as e:
            print(f"Import failed: {e}")
            storage.close()
            sys.exit(2)
        print(
            f"Imported: workouts={result.workouts_created}  movements={result.movements_created}  "
            f"wods={result.wods_created}  performances={result.performances_created}  PRs={result.prs_flagged}"
        )

    storage.close()
    print(f"DB saved to {DEFAULT_DB}")


if __name__ == "__main__":
    main()
