"""Configuration and error types shared across the ledger."""

from .config import LedgerConfig, load_config, get_config, reset_config, configure_logging
from .exceptions import (
    LedgerError,
    Unauthenticated,
    Forbidden,
    NotFound,
    BookingRequired,
    AlreadyCancelled,
    Conflict,
    MissingFields,
    StorageFailure,
)

__all__ = [
    'LedgerConfig',
    'load_config',
    'get_config',
    'reset_config',
    'configure_logging',
    'LedgerError',
    'Unauthenticated',
    'Forbidden',
    'NotFound',
    'BookingRequired',
    'AlreadyCancelled',
    'Conflict',
    'MissingFields',
    'StorageFailure',
]
