"""
Main entry point for flightledger maintenance commands.
"""

import argparse
from typing import List, Optional

from flightledger.database.config import initialize_database, reset_database_config
from flightledger.models.enums import SessionRole
from flightledger.models.user import SessionView
from flightledger.services.booking_ledger import BookingLedger
from flightledger.utils.config import configure_logging, load_config
from flightledger.utils.exceptions import LedgerError

ADMIN_VIEW = SessionView(role=SessionRole.ADMIN, username="cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="flightledger", description="Flight booking ledger maintenance")
    parser.add_argument('--env-file', default=None,
                        help='Path to a .env file (default: ./.env)')
    parser.add_argument('--database-url', default=None,
                        help='Override DATABASE_URL')

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('init-db', help='Create the ledger tables')
    subparsers.add_parser('sanitize', help='Clamp negative payments and prices to zero')
    subparsers.add_parser('next-user-id', help='Print the next sequential user id')
    subparsers.add_parser('info', help='Print database connection info')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the flightledger CLI."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.env_file)
    except ValueError as e:
        print(f"❌ {e}")
        return 1
    configure_logging(config.log_level)

    reset_database_config()
    try:
        db = initialize_database(
            database_url=args.database_url or config.database_url,
            echo=config.sql_echo,
            create_tables=args.command == 'init-db',
            transaction_timeout=config.transaction_timeout_seconds,
        )
        ledger = BookingLedger(db, config)

        if args.command == 'init-db':
            print("✓ Ledger tables created")
        elif args.command == 'sanitize':
            report = ledger.sanitize_payments(ADMIN_VIEW)
            print(f"✓ Payments fixed: {report.payments_fixed}")
            print(f"✓ Bookings fixed: {report.bookings_fixed}")
        elif args.command == 'next-user-id':
            print(ledger.next_user_id())
        elif args.command == 'info':
            if not db.test_connection():
                print("❌ Database is not reachable")
                return 1
            for key, value in db.get_connection_info().items():
                print(f"{key}: {value}")
    except LedgerError as e:
        print(f"❌ {e.code}: {e}")
        return 1
    except Exception as e:
        print(f"❌ Error: {e}")
        return 1
    finally:
        reset_database_config()

    return 0


if __name__ == "__main__":
    exit(main())
