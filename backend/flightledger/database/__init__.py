"""
Database package for the flight ledger.

This package provides the SQLAlchemy ledger tables and the database
configuration that owns transaction boundaries.
"""

from .models import (
    Base,
    User,
    Booking,
    Payment,
    create_all_tables,
    drop_all_tables
)

from .config import (
    DatabaseConfig,
    get_database_config,
    initialize_database,
    reset_database_config,
)

__all__ = [
    # Models
    'Base',
    'User',
    'Booking',
    'Payment',
    'create_all_tables',
    'drop_all_tables',

    # Configuration
    'DatabaseConfig',
    'get_database_config',
    'initialize_database',
    'reset_database_config',
]
