from __future__ import annotations

import argparse
from pathlib import Path

from ..db import get_db
from .. import crud
from .members_csv import detect_duplicate_names, read_members_csv


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Import family members from a CSV file")
    parser.add_argument("file_path", help="Path to the members CSV")
    parser.add_argument("--clear", action="store_true", help="Delete existing members first")
    args = parser.parse_args(argv)

    file_path = Path(args.file_path)
    if not file_path.exists():
        raise SystemExit(f"File not found: {file_path}")

    try:
        members = read_members_csv(file_path)
    except ValueError as e:
        raise SystemExit(str(e))

    duplicate_warnings = detect_duplicate_names(members)
    if duplicate_warnings:
        print("\n⚠️  DUPLICATE WARNINGS:")
        for warning in duplicate_warnings:
            print(f"  - {warning}")
        print()

    db_gen = get_db()
    db = next(db_gen)
    try:
        count = crud.bulk_create_members(db, members, clear_first=args.clear)
    finally:
        db_gen.close()

    print(f"Import complete: {count} family members")


if __name__ == "__main__":
    main()
