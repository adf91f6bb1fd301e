"""Create every GROWF table that does not exist yet.

Safe to run multiple times: existing tables are left untouched.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Allow running this script from any working directory.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import inspect

from core.database import ENGINE
from models import Base


def main() -> None:
    parser = argparse.ArgumentParser(description="Create missing GROWF tables.")
    parser.add_argument("--yes", action="store_true", help="Actually apply changes")
    args = parser.parse_args()

    existing = set(inspect(ENGINE).get_table_names())
    missing = [t.name for t in Base.metadata.sorted_tables if t.name not in existing]

    if not args.yes:
        print("Dry run. Re-run with --yes to apply.")
        if missing:
            for name in missing:
                print(f"Would create table: {name}")
        else:
            print("All tables already exist.")
        return

    Base.metadata.create_all(bind=ENGINE)
    print(f"OK: created {len(missing)} table(s): {', '.join(missing) or '-'}")


if __name__ == "__main__":
    main()
