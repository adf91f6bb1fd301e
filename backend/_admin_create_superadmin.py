from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

# Allow running this script from any working directory.
BACKEND_DIR = Path(__file__).resolve().parents[0]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import func, select

from core.bootstrap import ensure_superadmin
from core.database import SessionLocal
from models.user import User


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a SUPERADMIN user, or promote an existing user by email.")
    parser.add_argument("email", help="Email of the user to create or promote")
    parser.add_argument("--yes", action="store_true", help="Actually apply changes")
    args = parser.parse_args()

    email = (args.email or "").strip().lower()
    if not email or "@" not in email:
        raise SystemExit("A valid email is required")

    with SessionLocal() as db:
        existing = db.execute(select(User).where(func.lower(User.email) == email)).scalar_one_or_none()

        if not args.yes:
            print("Dry run. Re-run with --yes to apply.")
            if existing is None:
                print(f"Would create SUPERADMIN email={email!r}")
            else:
                print(f"Would promote email={email!r} from role={existing.role.value} to SUPERADMIN")
            return

        password = None
        if existing is None:
            pw1 = getpass.getpass("New password: ")
            pw2 = getpass.getpass("Confirm password: ")
            if pw1 != pw2:
                raise SystemExit("Passwords do not match")
            if len(pw1) < 8:
                raise SystemExit("Password must be at least 8 characters")
            password = pw1

        user, created = ensure_superadmin(db, email, password)
        print(
            {
                "id": str(user.id),
                "email": user.email,
                "role": user.role.value,
                "is_active": bool(user.is_active),
                "created": created,
            }
        )


if __name__ == "__main__":
    main()
