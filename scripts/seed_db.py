"""
Seed script for the Temple Community Hub mock DB or Firestore.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured DB: python scripts/seed_db.py --apply
  - With an admin account: python scripts/seed_db.py --apply --admin-email admin@example.org --admin-password secret1
  - Force mock DB even if FIREBASE configured: python scripts/seed_db.py --apply --force-mock

Behavior:
  - Creates the default programs unless one of them already exists.
  - Optionally creates an active admin account (skipped when the email is taken).
  - Gets DB via `temple_hub.config.firebase.get_db()` which will return the mock DB or real
    Firestore depending on settings.
"""

import argparse

from temple_hub.config.firebase import get_db
from temple_hub.core.security import hash_password
from temple_hub.core.settings import settings
from temple_hub.models.program import DEFAULT_PROGRAMS
from temple_hub.models.user import AccountStatus, Role
from temple_hub.services.account_service import MIN_PASSWORD_LENGTH
from temple_hub.services.program_service import ProgramService
from temple_hub.services.user_service import UserService, normalize_email


def seed_programs(programs: ProgramService, apply: bool) -> None:
    for default in DEFAULT_PROGRAMS:
        print(f"Preparing: programs/{default['name']}")
    if not apply:
        return
    seeded, created = programs.seed_defaults()
    if created:
        print(f"Created {len(seeded)} programs")
    else:
        print("Programs already exist, skipping")


def seed_admin(users: UserService, name: str, email: str, password: str, apply: bool) -> None:
    email = normalize_email(email)
    print(f"Preparing: users/{email} (admin)")
    if users.get_user_by_email(email):
        print(f"Account {email} already exists, skipping")
        return
    if not apply:
        return
    user = users.create_account({
        "name": name,
        "email": email,
        "password": hash_password(password),
        "role": Role.ADMIN.value,
        "status": AccountStatus.ACTIVE.value,
    })
    print(f"Wrote: users/{user['id']}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the DB instead of dry-run")
    parser.add_argument("--force-mock", action="store_true", help="Force use of mock DB even if FIREBASE configured")
    parser.add_argument("--admin-name", default="Admin", help="Name of the seeded admin account")
    parser.add_argument("--admin-email", help="Seed an active admin account with this email")
    parser.add_argument("--admin-password", help="Password for the seeded admin account")
    args = parser.parse_args()

    if args.admin_email and (not args.admin_password or len(args.admin_password) < MIN_PASSWORD_LENGTH):
        parser.error(f"--admin-password of at least {MIN_PASSWORD_LENGTH} characters is required with --admin-email")

    if args.force_mock:
        print("Forcing mock DB usage for this run.")
        # Settings is read once at import, so flipping the flag here is enough
        settings.USE_MOCK_DB = True

    db = get_db()
    users = UserService(db)
    programs = ProgramService(db, users=users)

    seed_programs(programs, args.apply)
    if args.admin_email:
        seed_admin(users, args.admin_name, args.admin_email, args.admin_password, args.apply)

    if args.apply:
        print("Seeding completed.")
    else:
        print("Dry run complete. Re-run with --apply to write to DB.")


if __name__ == "__main__":
    main()
