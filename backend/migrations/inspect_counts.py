from __future__ import annotations

import argparse
import os
from pathlib import Path

import psycopg2


TABLES = (
    "users",
    "organizations",
    "companies",
    "programs",
    "applications",
    "application_status_history",
    "documents",
    "messages",
    "notifications",
)


def _load_env_file(env_path: Path) -> None:
    if not env_path.exists():
        return
    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        k, v = line.split("=", 1)
        os.environ.setdefault(k.strip(), v.strip().strip('"').strip("'"))


def _normalize_psycopg_url(url: str) -> str:
    url = url.strip()
    if url.startswith("postgresql+psycopg2://"):
        return "postgresql://" + url.removeprefix("postgresql+psycopg2://")
    if url.startswith("postgres://"):
        return "postgresql://" + url.removeprefix("postgres://")
    return url


def main() -> int:
    parser = argparse.ArgumentParser(description="Print row counts and workflow status breakdowns (Postgres).")
    parser.add_argument("--by-status", action="store_true", help="Also break programs/applications down by status")
    args = parser.parse_args()

    backend_dir = Path(__file__).resolve().parents[1]
    _load_env_file(backend_dir / ".env")

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise SystemExit("DATABASE_URL not set (backend/.env)")

    conninfo = _normalize_psycopg_url(database_url)
    with psycopg2.connect(conninfo) as conn:
        with conn.cursor() as cur:
            counts = {}
            for table in TABLES:
                cur.execute(f"select count(*) from {table}")
                counts[table] = cur.fetchone()[0]
            print(counts)

            if args.by_status:
                for table in ("programs", "applications"):
                    cur.execute(f"select status, count(*) from {table} group by status order by status")
                    print(table, dict(cur.fetchall()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
