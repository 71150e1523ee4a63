#!/usr/bin/env python3
"""
Import a roster file into the roster database.

Reads a .csv, .txt or .xlsx roster (same columns as the download template),
prints the validation preview and, unless --dry-run is given, appends the
valid rows to the roster. Invalid rows are listed and skipped.

Usage:
    python scripts/import_roster.py students.xlsx
    python scripts/import_roster.py students.csv --location "Downtown" --dry-run

Requires:
    - .env file with the club settings (BELT_SYSTEM, POINTS_PER_STRIPE, ...)
"""

import logging
import sys
from collections import Counter
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from src.config.club import build_club_config
from src.config.settings import get_settings
from src.core.roster import committable_students, parse_roster, skipped_count, summarize
from src.infrastructure.spreadsheet import ImportFileError, read_roster_upload
from src.infrastructure.storage import SqlStudentStore, StorageError, create_db_engine


logger = logging.getLogger("import_roster")


def print_preview(batch, config) -> None:
    summary = summarize(batch)
    print(f"\nSchema v{batch.schema_version}, header {'found' if batch.header_detected else 'not found'}")
    print(f"Location: {batch.batch_location}  Class: {batch.batch_class or '(per row)'}")
    if batch.blank_rows_skipped:
        print(f"Blank rows ignored: {batch.blank_rows_skipped}")

    print()
    for row in batch.rows:
        belt = config.ledger.get(row.belt_id)
        marker = "[OK] " if row.is_valid else "[ERR]"
        issues = ", ".join(issue.value for issue in row.issues)
        print(
            f"{marker} line {row.line_number:>3}  {row.name or '(no name)':<25} "
            f"{belt.name if belt else row.belt_id:<15} stripes={row.stripes} points={row.total_points}"
            + (f"  <- {issues}" if issues else "")
        )

    print(f"\n{summary.message}")


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Import a student roster file')
    parser.add_argument('file', help='Roster file (.csv, .txt or .xlsx)')
    parser.add_argument('--location', default=None, help='Location for rows without one')
    parser.add_argument('--class', dest='assigned_class', default=None, help='Class for rows without one')
    parser.add_argument('--database-url', default=None, help='Roster database URL (defaults to DATABASE_URL)')
    parser.add_argument('--dry-run', action='store_true', help='Preview only, don\'t save')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    args = parser.parse_args()

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.DEBUG if args.verbose else logging.WARNING,
    )

    filepath = Path(args.file)
    if not filepath.exists():
        print(f"ERROR: Cannot find {args.file}")
        return 1

    settings = get_settings()
    try:
        config = build_club_config(settings)
    except ValueError as e:
        print(f"ERROR: Invalid club configuration: {e}")
        return 1

    try:
        text = read_roster_upload(filepath.name, filepath.read_bytes())
    except ImportFileError as e:
        print(f"ERROR: {e}")
        return 1

    batch = parse_roster(text, config, args.location, args.assigned_class)
    print(f"Parsed {len(batch.rows)} rows from: {filepath}")
    print_preview(batch, config)

    if args.dry_run:
        print("\n=== DRY RUN - No students were saved ===")
        return 0

    added = committable_students(batch)
    try:
        store = SqlStudentStore(create_db_engine(args.database_url or settings.database_url))
        store.save_students(added)
        roster_size = len(store.load_students())
    except StorageError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"\n=== Import Complete ===")
    print(f"Added: {len(added)}")
    print(f"Skipped: {skipped_count(batch)}")
    print(f"Roster size: {roster_size}")

    by_class = Counter(s.assigned_class for s in added)
    if by_class:
        print("\nAdded by class:")
        for name, count in sorted(by_class.items()):
            print(f"  {name}: {count}")

    logger.info("Roster import finished", extra={"added": len(added)})
    return 0


if __name__ == '__main__':
    sys.exit(main())
