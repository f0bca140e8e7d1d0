#!/usr/bin/env python3
"""
Admin Account Setup for the Viticult Whisky API

Creates the dashboard admin account, or resets the password of an existing
one. Uses the same hashing and validation as the running API.

Usage:
    python scripts/setup_admin.py --email admin@viticult.co.uk --password '<new password>'
    python scripts/setup_admin.py --email admin@viticult.co.uk --password '<new password>' --reset

Environment:
    MONGODB_URI and MONGODB_DB_NAME select the target database
"""

import argparse
import getpass
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pymongo.errors import DuplicateKeyError, PyMongoError

from viticult.core.config import settings
from viticult.core.errors import AppError
from viticult.infrastructure.mongo import close_client, ensure_indexes, get_database
from viticult.infrastructure.redis import MemoryTokenStore
from viticult.services.admin import AdminService


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or reset the admin dashboard account")
    parser.add_argument("--email", default=settings.admin_email, help="Admin email (default: ADMIN_EMAIL)")
    parser.add_argument("--password", help="New password; prompted for when omitted")
    parser.add_argument("--reset", action="store_true", help="Reset the password of an existing admin")
    return parser.parse_args(argv)


def main(argv=None, service: AdminService = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    password = args.password or getpass.getpass("Admin password: ")

    print("=" * 60)
    print("Viticult Whisky - Admin Setup")
    print("=" * 60)
    print(f"\nDatabase: {settings.mongodb_db_name}")
    print(f"Email: {args.email}")
    print()

    if service is None:
        db = get_database()
        ensure_indexes(db)
        service = AdminService(db, MemoryTokenStore())

    try:
        if args.reset:
            if not service.reset_admin(args.email, password):
                print(f"[ERROR] No admin account found for {args.email}")
                return 1
            print("[SUCCESS] Admin password reset")
        else:
            service.create_admin(args.email, password)
            print("[SUCCESS] Admin account created")
    except DuplicateKeyError:
        print(f"[ERROR] Admin {args.email} already exists. Use --reset to change the password.")
        return 1
    except AppError as e:
        print(f"[ERROR] {e.message}")
        return 1
    except PyMongoError as e:
        print(f"[ERROR] MongoDB error: {e}")
        return 1
    finally:
        close_client()

    return 0


if __name__ == "__main__":
    sys.exit(main())
