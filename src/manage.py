"""Checkout management CLI.

Creates and drops the database schema for the checkout domain, and runs the
pending-order expiry job outside the HTTP server (for a plain cron entry).
The database comes from DATABASE_URL; without it the domain runs on the
in-memory provider and the schema commands do nothing.

Usage:
    python src/manage.py setup-db
    python src/manage.py drop-db
    python src/manage.py expire-pending-orders [--older-than-minutes 30]
"""

import argparse
import sys


def _init_domain():
    from checkout.config import Settings
    from checkout.domain import checkout
    from checkout.utils.db import configure_database
    from checkout.utils.logging import configure_logging

    settings = Settings.from_env()
    configure_logging(settings)
    configure_database(checkout, settings)
    checkout.init()
    return checkout, settings


def setup_database():
    from checkout.utils.db import setup_db

    domain, _ = _init_domain()
    print("Creating checkout database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from checkout.utils.db import drop_db

    domain, _ = _init_domain()
    print("Dropping checkout database schema...")
    drop_db(domain)
    print("Done.")


def expire_pending_orders(older_than_minutes=None):
    from checkout.order.expiry import expire_pending_orders as run_expiry

    domain, settings = _init_domain()
    threshold = older_than_minutes if older_than_minutes is not None else settings.pending_order_timeout_minutes
    with domain.domain_context():
        expired = run_expiry(domain, older_than_minutes=threshold)
    print(f"Expired {expired} pending order(s).")


def main():
    parser = argparse.ArgumentParser(description="Checkout management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    expire_parser = subparsers.add_parser("expire-pending-orders", help="Cancel stale PENDING orders")
    expire_parser.add_argument(
        "--older-than-minutes",
        type=int,
        default=None,
        help="Age threshold (default: CHECKOUT_PENDING_ORDER_TIMEOUT_MINUTES)",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "expire-pending-orders":
        expire_pending_orders(args.older_than_minutes)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
