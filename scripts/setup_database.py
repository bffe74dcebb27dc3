"""Database bootstrap script for the dimensioning application.

Creates the SQLite schema, optionally removing the existing database file
first, and lists the files ingested so far.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from shift_dimensioning import configure, init_database, list_dates, list_ingested_files, load_settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Set up the dimensioning database")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Delete the existing database file before initialising (if it exists)",
    )
    parser.add_argument(
        "--show-files",
        action="store_true",
        help="List ingested files after initialisation",
    )
    return parser.parse_args(argv)


def remove_existing_database(db_path: Path) -> None:
    if db_path.exists():
        db_path.unlink()
        print(f"Removed existing database: {db_path}")
    else:
        print("No existing database file found; nothing to remove")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = load_settings()
    configure(settings.db_path)

    print("=" * 60)
    print("Dimensioning - Database Setup")
    print("=" * 60)

    if args.force:
        remove_existing_database(settings.db_path)

    init_database()
    print(f"Database initialised at: {settings.db_path}")
    print(f"Stored dates: {len(list_dates())}")

    if args.show_files:
        for row in list_ingested_files():
            flag = " (degraded)" if row["degraded"] else ""
            print(f"  #{row['id']:4d} {row['filename']} | {row['month_name']} {row['year']} | {row['source']}{flag}")

    print("=" * 60)
    print("Done. You can now run: streamlit run main.py")


if __name__ == "__main__":
    main()
