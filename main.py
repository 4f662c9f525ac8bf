#!/usr/bin/env python3
"""
pagedesk admin CLI -- manage users and browse items without the HTTP layer.

Usage:
  python main.py create-user admin@example.com --name Admin --role admin
  python main.py list-items
  python main.py list-items --page 2 --limit 20 --category books
  python main.py list-items --by-category

Reads the same environment / .env settings as the API (MONGO_URL, MONGO_DB,
BASE_URL, SECRET_KEY or DEBUG=true).
"""

import argparse
import getpass
import json
import sys

from pymongo.errors import DuplicateKeyError

from auth.models import User
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, hash_password
from catalog.store import OWNER_EXPAND, CatalogStore
from core.config import get_settings
from core.pagination import Paginator
from store.documents import DocumentStore, serialize_document


def _create_user(args: argparse.Namespace, documents: DocumentStore) -> int:
    store = UserStore(documents)
    password = args.password or getpass.getpass("Password: ")
    if len(password) < 8:
        print("  [!] Password must be at least 8 characters.", file=sys.stderr)
        return 1
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        print(f"  [!] Password must be at most {MAX_PASSWORD_BYTES} bytes (UTF-8).", file=sys.stderr)
        return 1
    try:
        user_id = store.create_user(
            User(email=args.email, name=args.name or args.email, role=args.role, hashed_password=hash_password(password))
        )
    except DuplicateKeyError:
        print(f"  [!] A user with email '{args.email}' already exists.", file=sys.stderr)
        return 1
    print(f"Created {args.role} {args.email} ({user_id})")
    return 0


def _list_items(args: argparse.Namespace, documents: DocumentStore, paginator: Paginator) -> int:
    catalog = CatalogStore(documents)
    if args.by_category:
        page = paginator.paginate_by_aggregation(
            catalog.source,
            catalog.category_pipeline(),
            page=args.page,
            limit=args.limit,
            endpoint="items/by-category",
        )
    else:
        page = paginator.paginate_by_filter(
            catalog.source,
            "items",
            filter=catalog.item_filter(category=args.category),
            page=args.page,
            limit=args.limit,
            expand=[OWNER_EXPAND],
        )
    print(json.dumps({"result": serialize_document(page.result), "pagination": page.pagination.to_dict()}, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="pagedesk",
        description="Admin tasks for the pagedesk document API.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a local user account")
    create.add_argument("email")
    create.add_argument("--name", default=None, help="Display name (defaults to the email)")
    create.add_argument("--role", choices=["admin", "user"], default="user")
    create.add_argument("--password", default=None, help="Prompted for when omitted")

    items = sub.add_parser("list-items", help="Print one page of items as JSON")
    items.add_argument("--page", type=int, default=1)
    items.add_argument("--limit", type=int, default=None, help="Page size (default: DEFAULT_PAGE_SIZE)")
    items.add_argument("--category", default=None)
    items.add_argument("--by-category", action="store_true", help="Page through per-category counts instead")

    args = parser.parse_args(argv)
    settings = get_settings()

    documents = DocumentStore(settings.mongo_url, settings.mongo_db)
    try:
        if args.command == "create-user":
            return _create_user(args, documents)
        if args.limit is None:
            args.limit = settings.default_page_size
        if args.page < 1 or args.limit < 1:
            parser.error("--page and --limit must be >= 1")
        return _list_items(args, documents, Paginator(base_url=settings.base_url))
    finally:
        documents.close()


if __name__ == "__main__":
    sys.exit(main())
