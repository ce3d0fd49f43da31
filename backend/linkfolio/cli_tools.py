#!/usr/bin/env python3
"""
CLI tool for account administration and maintenance.
Usage: python -m linkfolio.cli_tools create-admin NAME EMAIL PASSWORD
       python -m linkfolio.cli_tools promote EMAIL | demote EMAIL
       python -m linkfolio.cli_tools list-users
       python -m linkfolio.cli_tools reconcile
"""

import argparse
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from .database import Base, SessionLocal, engine
from .errors import ServiceError
from .models import ROLE_ADMIN, ROLE_USER, User
from .services.folders import reconcile_folder_references
from .services.users import UserService, get_user_by_email

SessionFactory = Callable[[], Session]


def create_admin(name: str, email: str, password: str, session_factory: SessionFactory = SessionLocal) -> User:
    """Register a new account with the admin role."""
    db = session_factory()
    try:
        user = UserService.signup(db, name, email, password, role=ROLE_ADMIN)
        print(f"Admin account created: {user.email} (id {user.id})")
        return user
    finally:
        db.close()


def set_role(email: str, role: str, session_factory: SessionFactory = SessionLocal) -> bool:
    """Change the role of an existing account. Returns False if no such account."""
    db = session_factory()
    try:
        user = get_user_by_email(db, email)
        if not user:
            print(f"No user with email {email}.")
            return False
        user.role = role
        db.commit()
        print(f"{user.email} is now {role}.")
        return True
    finally:
        db.close()


def list_users(session_factory: SessionFactory = SessionLocal) -> List[User]:
    """Print all accounts."""
    db = session_factory()
    try:
        users = db.query(User).order_by(User.id).all()
        if not users:
            print("No users found.")
            return users

        print("\nUsers:")
        print("-" * 80)
        print(f"{'ID':<6} {'Email':<36} {'Role':<8} {'Active':<8} {'Created'}")
        print("-" * 80)
        for user in users:
            created = user.created_at.strftime("%Y-%m-%d %H:%M") if user.created_at else "-"
            print(f"{user.id:<6} {user.email:<36} {user.role:<8} {str(user.is_active):<8} {created}")
        print("-" * 80)
        return users
    finally:
        db.close()


def reconcile(session_factory: SessionFactory = SessionLocal) -> int:
    """Clear folder references that point at deleted or missing folders."""
    db = session_factory()
    try:
        fixed = reconcile_folder_references(db)
        print(f"Reconciled {fixed} link(s).")
        return fixed
    finally:
        db.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="LinkFolio administration CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    create_parser = subparsers.add_parser("create-admin", help="Create an admin account")
    create_parser.add_argument("name", help="Display name")
    create_parser.add_argument("email", help="Login email")
    create_parser.add_argument("password", help="Password (at least 8 characters)")

    promote_parser = subparsers.add_parser("promote", help="Grant the admin role")
    promote_parser.add_argument("email")

    demote_parser = subparsers.add_parser("demote", help="Revoke the admin role")
    demote_parser.add_argument("email")

    subparsers.add_parser("list-users", help="List all accounts")
    subparsers.add_parser("reconcile", help="Repair dangling folder references")

    args = parser.parse_args(argv)

    # Ensure tables exist
    Base.metadata.create_all(bind=engine)

    try:
        if args.command == "create-admin":
            create_admin(args.name, args.email, args.password)
        elif args.command == "promote":
            return 0 if set_role(args.email, ROLE_ADMIN) else 1
        elif args.command == "demote":
            return 0 if set_role(args.email, ROLE_USER) else 1
        elif args.command == "list-users":
            list_users()
        elif args.command == "reconcile":
            reconcile()
        else:
            parser.print_help()
            return 1
    except ServiceError as e:
        print(f"Error: {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
