"""
Snapshot I/O module for the firm core.

Provides loading and saving of firm state from directories of CSV files.
"""

from firm_core.data.loaders import (
    DataLoadError,
    load_snapshot,
    save_snapshot,
)
from firm_core.data.schemas import (
    ACCOUNTS_SCHEMA,
    HOLDINGS_SCHEMA,
    INSTRUMENTS_SCHEMA,
    PROFILES_SCHEMA,
    SECTORS_SCHEMA,
    FRACTIONAL_CARRY_SCHEMA,
)

__all__ = [
    "DataLoadError",
    "load_snapshot",
    "save_snapshot",
    "ACCOUNTS_SCHEMA",
    "HOLDINGS_SCHEMA",
    "INSTRUMENTS_SCHEMA",
    "PROFILES_SCHEMA",
    "SECTORS_SCHEMA",
    "FRACTIONAL_CARRY_SCHEMA",
]
