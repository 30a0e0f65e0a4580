#!/usr/bin/env python3
"""
Taskboard -- command-line administration.

Usage:
  python main.py seed-users
  python main.py seed-tasks [--year 2025] [--force] [--seed 42]
  python main.py clear-tasks [--year 2025] [--force]
  python main.py create-user --email ana@example.com --name "Ana" --role editor [--password ...]

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the database to operate on
                (default: sqlite:///taskboard.db).
"""

import argparse
import calendar
import getpass
import random
import sys
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password
from core.policy import Role
from tasks.seed import DEMO_PASSWORD, DEMO_USERS, seed_tasks, seed_users
from tasks.store import TaskStore


def _confirm(prompt: str, force: bool) -> bool:
    """Ask for a y/N confirmation unless --force was given."""
    if force:
        return True
    answer = input(f"  {prompt} [y/N] ").strip().lower()
    return answer in ("y", "yes")


def cmd_seed_users(args: argparse.Namespace) -> int:
    store = UserStore()
    try:
        created = seed_users(store)
    finally:
        store.close()
    if not created:
        print("  Demo users already exist.")
        return 0
    print(f"  Created {len(created)} demo user(s). Password for all: '{DEMO_PASSWORD}'")
    for _name, email, role in DEMO_USERS:
        print(f"    {role.value:<7} {email}")
    return 0


def cmd_seed_tasks(args: argparse.Namespace) -> int:
    year = args.year or date.today().year
    if not _confirm(f"This will add sample tasks for {year}. Continue?", args.force):
        print("  Operation cancelled.")
        return 0

    user_store = UserStore()
    task_store = TaskStore()
    try:
        rng = random.Random(args.seed) if args.seed is not None else None
        created = seed_tasks(task_store, user_store, year=year, rng=rng)
        if created == 0:
            print(f"  {year} already has tasks. Run 'clear-tasks --year {year}' first to re-seed.")
            return 0
        print(f"  Seeded {created} tasks across {year}.")
        print("\n  Completed tasks per month:")
        for month, count in task_store.completed_by_month(year).items():
            print(f"    {calendar.month_name[month]:<10} {count}")
    finally:
        task_store.close()
        user_store.close()
    return 0


def cmd_clear_tasks(args: argparse.Namespace) -> int:
    year = args.year or date.today().year
    if not _confirm(f"This will delete all tasks created in {year}. Continue?", args.force):
        print("  Operation cancelled.")
        return 0

    store = TaskStore()
    try:
        deleted = store.delete_created_in_year(year)
    finally:
        store.close()
    if deleted == 0:
        print(f"  No tasks found for {year}.")
    else:
        print(f"  Deleted {deleted} tasks from {year}.")
    return 0


def cmd_create_user(args: argparse.Namespace) -> int:
    password: Optional[str] = args.password
    if password is None:
        password = getpass.getpass("  Password: ")
    if len(password) < 8:
        print("  [!] Password must be at least 8 characters.")
        return 1

    store = UserStore()
    try:
        user_id = store.create_user(
            User(
                name=args.name,
                email=args.email,
                roles=[args.role],
                hashed_password=hash_password(password),
            )
        )
    except IntegrityError:
        print(f"  [!] A user with email '{args.email}' already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created {args.role} '{args.email}' (id {user_id}).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskboard",
        description="Taskboard administration commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py seed-users
  python main.py seed-tasks --force
  python main.py seed-tasks --year 2024 --seed 7 --force
  python main.py clear-tasks --year 2024
  python main.py create-user --email ana@example.com --name Ana --role admin
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("seed-users", help="Create the demo admin, editor and viewer accounts")
    p.set_defaults(func=cmd_seed_users)

    p = sub.add_parser("seed-tasks", help="Add sample tasks spread over a year")
    p.add_argument("--year", type=int, default=None, help="Year to seed (default: current year)")
    p.add_argument("--force", action="store_true", help="Skip the confirmation prompt")
    p.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    p.set_defaults(func=cmd_seed_tasks)

    p = sub.add_parser("clear-tasks", help="Delete every task created in a year")
    p.add_argument("--year", type=int, default=None, help="Year to clear (default: current year)")
    p.add_argument("--force", action="store_true", help="Skip the confirmation prompt")
    p.set_defaults(func=cmd_clear_tasks)

    p = sub.add_parser("create-user", help="Create an account with a single role")
    p.add_argument("--email", required=True)
    p.add_argument("--name", required=True)
    p.add_argument("--role", required=True, choices=[r.value for r in Role])
    p.add_argument("--password", default=None, help="Prompted for when omitted")
    p.set_defaults(func=cmd_create_user)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
