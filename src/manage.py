"""Checkout database management CLI.

Provides commands to create and drop the checkout schema and to load the
product catalog slice the pipeline reads.

Usage:
    python src/manage.py setup-db                  # Create all tables
    python src/manage.py drop-db                   # Drop all tables
    python src/manage.py seed-products FILE.json   # Upsert products from JSON
"""

import argparse
import json
import sys
from pathlib import Path


def setup_database():
    """Create the checkout database schema."""
    from checkout.domain import checkout
    from checkout.utils.db import setup_db

    print("Initializing checkout domain...")
    checkout.init()
    print("Creating checkout database schema...")
    setup_db(checkout)
    print("Done.")


def drop_database():
    """Drop the checkout database schema."""
    from checkout.domain import checkout
    from checkout.utils.db import drop_db

    print("Initializing checkout domain...")
    checkout.init()
    print("Dropping checkout database schema...")
    drop_db(checkout)
    print("Done.")


def load_products(records: list[dict]) -> int:
    """Upsert products into the active domain; returns how many were written.

    Each record uses the Product field names; ``id`` is optional.
    """
    from protean.utils.globals import current_domain

    from checkout.catalog.product import Product

    repo = current_domain.repository_for(Product)
    for record in records:
        repo.add(Product(**record))
    return len(records)


def seed_products(path: str):
    """Load products from a JSON array file."""
    from checkout.domain import checkout

    records = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(records, list):
        print("Product file must contain a JSON array", file=sys.stderr)
        sys.exit(1)

    checkout.init()
    with checkout.domain_context():
        count = load_products(records)
    print(f"Loaded {count} products.")


def main():
    parser = argparse.ArgumentParser(description="Checkout database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    seed_parser = subparsers.add_parser("seed-products", help="Upsert products from a JSON file")
    seed_parser.add_argument("path", help="Path to a JSON array of product records")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "seed-products":
        seed_products(args.path)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
