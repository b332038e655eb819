#!/usr/bin/env python3
"""
import_library.py: Import a music library export into TagTune

Reads a JSON file holding either an array of song records or an object with
a ``songs`` array (the same payload ``POST /api/songs/import`` accepts) and
merges it into one user's library.  Songs already in the library are
skipped, so the script can be re-run safely.

Usage:
    python scripts/import_library.py <provider_id> <export.json>
    python scripts/import_library.py apple-123 library.json --db data/tagtune.db
    python scripts/import_library.py apple-123 library.json --json

Flags:
    --db PATH   SQLite database to write to (default: DB_PATH from config)
    --json      Output the result as JSON
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from tagtune.config import DB_PATH
from tagtune.errors import TagTuneError
from tagtune.services.importer import import_songs
from tagtune.store import SQLiteStore

# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def load_export(path: Path) -> Any:
    """Return the song list from an export file."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "songs" in data:
        return data["songs"]
    return data


async def run_import(
    db_path: Path, provider_id: str, songs: Any
) -> Dict[str, Any]:
    store = SQLiteStore(db_path)
    await store.init()

    user, created = await store.get_or_create_user(provider_id)
    before = await store.count_songs(user.id)
    submitted = await import_songs(store, user.id, songs)
    after = await store.count_songs(user.id)

    return {
        "user_id": user.id,
        "user_created": created,
        "submitted": submitted,
        "added": after - before,
        "total": after,
    }


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Import a music library export into TagTune",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("provider_id", help="Provider id of the library owner")
    parser.add_argument("export", help="JSON file with the songs to import")
    parser.add_argument(
        "--db",
        default=str(DB_PATH) if DB_PATH else None,
        help="SQLite database path (default: DB_PATH)",
    )
    parser.add_argument("--json", action="store_true", help="Output results as JSON")

    args = parser.parse_args(argv)

    if not args.db:
        print("❌ No database configured. Pass --db or set DB_PATH.")
        return 2

    export_path = Path(args.export)
    if not export_path.is_file():
        print(f"❌ Not a file: {export_path}")
        return 2

    try:
        songs = load_export(export_path)
    except (OSError, ValueError) as e:
        print(f"❌ Could not read {export_path}: {e}")
        return 2

    try:
        result = asyncio.run(run_import(Path(args.db), args.provider_id, songs))
    except TagTuneError as e:
        print(f"❌ Import failed: {e.message}")
        return 1

    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print()
        print("=" * 60)
        print(f"  Library of {args.provider_id} (user id {result['user_id']})")
        print("-" * 60)
        print(f"  Submitted: {result['submitted']}")
        print(f"  Added:     {result['added']}")
        print(f"  Skipped:   {result['submitted'] - result['added']}")
        print(f"  Total:     {result['total']}")
        print()

    return 0


if __name__ == "__main__":
    sys.exit(main())
