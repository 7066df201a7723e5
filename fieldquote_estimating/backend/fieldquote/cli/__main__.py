# backend/fieldquote/cli/__main__.py
from __future__ import annotations

import argparse
import json

from fieldquote.cli.seed import TEST_PASSWORD, fix_admin_specialties, seed_catalog, seed_demo, seed_test_users
from fieldquote.db import SessionLocal, init_schema
from fieldquote.logging_config import configure_logging


def main() -> None:
    p = argparse.ArgumentParser(prog="python -m fieldquote.cli")
    p.add_argument("--init-schema", action="store_true", help="create tables before seeding (local sqlite)")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("seed-catalog", help="trades, specialties and regions")

    demo = sub.add_parser("seed-demo", help="demo company, services, pricing rule and sample job")
    demo.add_argument("--owner-username", default="admin")
    demo.add_argument("--owner-password", default="admin1234")

    users = sub.add_parser("seed-test-users", help="test accounts in the demo company")
    users.add_argument("--password", default=TEST_PASSWORD)

    fix = sub.add_parser("fix-admin-specialties", help="ensure the admin covers framing and roofing")
    fix.add_argument("--username", default="admin")

    args = p.parse_args()
    configure_logging()
    if args.init_schema:
        init_schema()

    db = SessionLocal()
    try:
        if args.command == "seed-catalog":
            out = seed_catalog(db)
        elif args.command == "seed-demo":
            out = seed_demo(db, owner_username=args.owner_username, owner_password=args.owner_password)
        elif args.command == "seed-test-users":
            out = seed_test_users(db, password=args.password)
        else:
            out = fix_admin_specialties(db, username=args.username)
    finally:
        db.close()

    print(json.dumps(out.as_dict(), indent=2))


if __name__ == "__main__":
    main()
