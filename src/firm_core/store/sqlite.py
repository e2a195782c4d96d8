"""
SQLite-backed portfolio store.

Schema provisioning is a one-time setup step (provision_schema) kept apart
from the store's per-call reads and writes, which assume the tables exist.
Decimal quantities are stored as TEXT so no precision is lost.
"""

import logging
import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterator, Optional

from firm_core.errors import ValidationError
from firm_core.models import CASH_SECTOR, Account, Holding, Instrument, Profile
from firm_core.store.base import PortfolioStore, StorageError

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sectors (
    name TEXT PRIMARY KEY
);
CREATE TABLE IF NOT EXISTS clients (
    client_id INTEGER PRIMARY KEY
);
CREATE TABLE IF NOT EXISTS advisors (
    advisor_id INTEGER PRIMARY KEY
);
CREATE TABLE IF NOT EXISTS instruments (
    symbol TEXT PRIMARY KEY,
    sector TEXT NOT NULL REFERENCES sectors(name),
    price TEXT NOT NULL DEFAULT '1',
    company_name TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS profile_sectors (
    profile_name TEXT NOT NULL,
    sector TEXT NOT NULL REFERENCES sectors(name),
    percentage INTEGER NOT NULL,
    PRIMARY KEY (profile_name, sector)
);
CREATE TABLE IF NOT EXISTS accounts (
    account_id INTEGER PRIMARY KEY,
    client_id INTEGER NOT NULL REFERENCES clients(client_id),
    advisor_id INTEGER NOT NULL REFERENCES advisors(advisor_id),
    profile_name TEXT NOT NULL,
    reinvest INTEGER NOT NULL DEFAULT 0,
    cash_balance TEXT NOT NULL DEFAULT '0',
    name TEXT NOT NULL DEFAULT ''
);
CREATE TABLE IF NOT EXISTS holdings (
    account_id INTEGER NOT NULL REFERENCES accounts(account_id),
    symbol TEXT NOT NULL REFERENCES instruments(symbol),
    shares TEXT NOT NULL,
    acb TEXT NOT NULL DEFAULT '0',
    PRIMARY KEY (account_id, symbol)
);
CREATE TABLE IF NOT EXISTS fractional_carry (
    symbol TEXT PRIMARY KEY REFERENCES instruments(symbol),
    shares TEXT NOT NULL
);
"""


def provision_schema(connection: sqlite3.Connection) -> None:
    """
    Create the firm tables if they do not exist.

    Args:
        connection: Open SQLite connection
    """
    connection.executescript(SCHEMA_SQL)
    connection.execute(
        "INSERT OR IGNORE INTO sectors (name) VALUES (?)", (CASH_SECTOR,)
    )


def connect(path: str | Path, provision: bool = False) -> sqlite3.Connection:
    """
    Open a SQLite connection configured for the store.

    Args:
        path: Database file path (":memory:" for a private in-memory database)
        provision: Create the schema if it does not exist

    Returns:
        Connection in autocommit mode; SqliteStore manages transactions itself
    """
    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(str(path), isolation_level=None)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys=ON")
    if provision:
        provision_schema(connection)
    logger.debug(f"Connected to database: {path}")
    return connection


class SqliteStore(PortfolioStore):
    """PortfolioStore over a single SQLite connection."""

    def __init__(self, connection: sqlite3.Connection):
        """
        Initialize the store.

        Args:
            connection: Connection whose schema already exists
        """
        self._connection = connection
        self._depth = 0

    @classmethod
    def open(cls, path: str | Path, provision: bool = False) -> "SqliteStore":
        """Open a store on a database file."""
        return cls(connect(path, provision=provision))

    @property
    def name(self) -> str:
        return "SQLite"

    def close(self) -> None:
        """Close the underlying connection."""
        self._connection.close()

    # -- low level ------------------------------------------------------------

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._connection.execute(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"Database access error: {e}") from e

    def _fetchone(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        return self._execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        return list(self._execute(sql, params).fetchall())

    def _exists(self, sql: str, params: tuple) -> bool:
        return self._fetchone(sql, params) is not None

    # -- setup helpers (entity lifecycle lives outside the core) --------------

    def add_sector(self, sector_name: str) -> None:
        """Define a sector. The cash pseudo-sector always exists."""
        if not sector_name:
            raise ValidationError("Sector name cannot be empty")
        self._execute("INSERT OR IGNORE INTO sectors (name) VALUES (?)", (sector_name,))

    def add_instrument(
        self,
        symbol: str,
        sector: str,
        price: Decimal = Decimal("1"),
        company_name: str = "",
    ) -> Instrument:
        """Define a stock in a known sector."""
        if not symbol or not sector:
            raise ValidationError("Symbol and sector are required")
        if not self._exists("SELECT 1 FROM sectors WHERE name = ?", (sector,)):
            raise ValidationError(f"Unknown sector: {sector}")
        instrument = Instrument(
            symbol=_normalize(symbol),
            sector=sector,
            price=Decimal(str(price)),
            company_name=company_name,
        )
        self._execute(
            "INSERT INTO instruments (symbol, sector, price, company_name) "
            "VALUES (?, ?, ?, ?) "
            "ON CONFLICT (symbol) DO UPDATE SET sector = excluded.sector, "
            "price = excluded.price, company_name = excluded.company_name",
            (instrument.symbol, instrument.sector, str(instrument.price), company_name),
        )
        return instrument

    def set_price(self, symbol: str, price: Decimal) -> None:
        """Update an instrument's current price."""
        price = Decimal(str(price))
        if price < 0:
            raise ValidationError(f"Price cannot be negative: {price}")
        cursor = self._execute(
            "UPDATE instruments SET price = ? WHERE symbol = ?",
            (str(price), _normalize(symbol)),
        )
        if cursor.rowcount == 0:
            raise ValidationError(f"Unknown instrument: {symbol}")

    def add_profile(self, name: str, target_weights: dict[str, int]) -> Profile:
        """Define a target allocation profile; percentages must total 100."""
        if not name or not target_weights:
            raise ValidationError("Profile name and weights are required")
        profile = Profile.create(name, target_weights)
        if profile.total_percentage != 100:
            raise ValidationError(
                f"Profile {name} weights sum to {profile.total_percentage}, expected 100"
            )
        known = set(self.sector_names())
        unknown = [s for s in profile.target_weights if s not in known]
        if unknown:
            raise ValidationError(f"Profile {name} references unknown sectors: {unknown}")
        with self.transaction():
            self._execute("DELETE FROM profile_sectors WHERE profile_name = ?", (name,))
            for sector, percentage in profile.target_weights.items():
                self._execute(
                    "INSERT INTO profile_sectors (profile_name, sector, percentage) "
                    "VALUES (?, ?, ?)",
                    (name, sector, int(percentage)),
                )
        return profile

    def add_client(self, client_id: Optional[int] = None) -> int:
        """Register a client and return its id."""
        cursor = self._execute("INSERT INTO clients (client_id) VALUES (?)", (client_id,))
        return cursor.lastrowid if client_id is None else client_id

    def add_advisor(self, advisor_id: Optional[int] = None) -> int:
        """Register an advisor and return its id."""
        cursor = self._execute("INSERT INTO advisors (advisor_id) VALUES (?)", (advisor_id,))
        return cursor.lastrowid if advisor_id is None else advisor_id

    def add_account(
        self,
        client_id: int,
        advisor_id: int,
        profile_name: str,
        reinvest: bool = False,
        cash_balance: Decimal = Decimal("0"),
        name: str = "",
        account_id: Optional[int] = None,
    ) -> int:
        """Open an account for an existing client and advisor."""
        if not self.client_exists(client_id):
            raise ValidationError(f"Unknown client: {client_id}")
        if not self.advisor_exists(advisor_id):
            raise ValidationError(f"Unknown advisor: {advisor_id}")
        if not profile_name:
            raise ValidationError("Profile name is required")
        cursor = self._execute(
            "INSERT INTO accounts "
            "(account_id, client_id, advisor_id, profile_name, reinvest, cash_balance, name) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                account_id,
                client_id,
                advisor_id,
                profile_name,
                int(reinvest),
                str(Decimal(str(cash_balance))),
                name,
            ),
        )
        return cursor.lastrowid if account_id is None else account_id

    # -- PortfolioStore -------------------------------------------------------

    def client_exists(self, client_id: int) -> bool:
        return self._exists("SELECT 1 FROM clients WHERE client_id = ?", (client_id,))

    def advisor_exists(self, advisor_id: int) -> bool:
        return self._exists("SELECT 1 FROM advisors WHERE advisor_id = ?", (advisor_id,))

    def account_exists(self, account_id: int) -> bool:
        return self._exists("SELECT 1 FROM accounts WHERE account_id = ?", (account_id,))

    def instrument_exists(self, symbol: str) -> bool:
        if symbol is None:
            return False
        return self._exists("SELECT 1 FROM instruments WHERE symbol = ?", (_normalize(symbol),))

    def get_account(self, account_id: int) -> Optional[Account]:
        row = self._fetchone("SELECT * FROM accounts WHERE account_id = ?", (account_id,))
        return _row_to_account(row) if row is not None else None

    def list_accounts(self) -> list[Account]:
        rows = self._fetchall("SELECT * FROM accounts ORDER BY account_id")
        return [_row_to_account(r) for r in rows]

    def accounts_for_advisor(self, advisor_id: int) -> list[Account]:
        rows = self._fetchall(
            "SELECT * FROM accounts WHERE advisor_id = ? ORDER BY account_id", (advisor_id,)
        )
        return [_row_to_account(r) for r in rows]

    def accounts_for_client(self, client_id: int) -> list[Account]:
        rows = self._fetchall(
            "SELECT * FROM accounts WHERE client_id = ? ORDER BY account_id", (client_id,)
        )
        return [_row_to_account(r) for r in rows]

    def get_holding(self, account_id: int, symbol: str) -> Optional[Holding]:
        row = self._fetchone(
            "SELECT * FROM holdings WHERE account_id = ? AND symbol = ?",
            (account_id, _normalize(symbol)),
        )
        return _row_to_holding(row) if row is not None else None

    def set_holding(
        self,
        account_id: int,
        symbol: str,
        shares: Decimal,
        acb: Decimal,
    ) -> None:
        self._execute(
            "INSERT INTO holdings (account_id, symbol, shares, acb) VALUES (?, ?, ?, ?) "
            "ON CONFLICT (account_id, symbol) DO UPDATE SET "
            "shares = excluded.shares, acb = excluded.acb",
            (account_id, _normalize(symbol), str(shares), str(acb)),
        )

    def holdings_for_account(self, account_id: int) -> list[Holding]:
        rows = self._fetchall(
            "SELECT * FROM holdings WHERE account_id = ? ORDER BY symbol", (account_id,)
        )
        return [_row_to_holding(r) for r in rows]

    def list_holdings(self) -> list[Holding]:
        rows = self._fetchall("SELECT * FROM holdings ORDER BY account_id, symbol")
        return [_row_to_holding(r) for r in rows]

    def holders_of(self, symbol: str) -> list[Holding]:
        rows = self._fetchall(
            "SELECT * FROM holdings WHERE symbol = ? ORDER BY account_id", (_normalize(symbol),)
        )
        return [_row_to_holding(r) for r in rows]

    def get_cash(self, account_id: int) -> Decimal:
        row = self._fetchone(
            "SELECT cash_balance FROM accounts WHERE account_id = ?", (account_id,)
        )
        if row is None:
            raise StorageError(f"Unknown account: {account_id}")
        return Decimal(row["cash_balance"])

    def adjust_cash(self, account_id: int, amount: Decimal) -> None:
        with self.transaction():
            balance = self.get_cash(account_id) + amount
            self._execute(
                "UPDATE accounts SET cash_balance = ? WHERE account_id = ?",
                (str(balance), account_id),
            )

    def get_instrument(self, symbol: str) -> Optional[Instrument]:
        if symbol is None:
            return None
        row = self._fetchone("SELECT * FROM instruments WHERE symbol = ?", (_normalize(symbol),))
        if row is None:
            return None
        return Instrument(
            symbol=row["symbol"],
            sector=row["sector"],
            price=Decimal(row["price"]),
            company_name=row["company_name"],
        )

    def list_instruments(self) -> list[Instrument]:
        rows = self._fetchall("SELECT symbol FROM instruments ORDER BY symbol")
        return [self.get_instrument(r["symbol"]) for r in rows]

    def profile_weights(self, profile_name: str) -> dict[str, int]:
        rows = self._fetchall(
            "SELECT sector, percentage FROM profile_sectors WHERE profile_name = ?",
            (profile_name,),
        )
        return {r["sector"]: int(r["percentage"]) for r in rows}

    def sector_names(self) -> list[str]:
        rows = self._fetchall("SELECT name FROM sectors ORDER BY rowid")
        return [r["name"] for r in rows]

    def get_fractional_carry(self, symbol: str) -> Decimal:
        row = self._fetchone(
            "SELECT shares FROM fractional_carry WHERE symbol = ?", (_normalize(symbol),)
        )
        return Decimal(row["shares"]) if row is not None else Decimal("0")

    def set_fractional_carry(self, symbol: str, shares: Decimal) -> None:
        self._execute(
            "INSERT INTO fractional_carry (symbol, shares) VALUES (?, ?) "
            "ON CONFLICT (symbol) DO UPDATE SET shares = excluded.shares",
            (_normalize(symbol), str(shares)),
        )

    @contextmanager
    def transaction(self) -> Iterator["SqliteStore"]:
        if self._depth > 0:
            # Join the outer unit of work
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._execute("BEGIN")
        self._depth = 1
        try:
            yield self
            self._execute("COMMIT")
        except Exception:
            try:
                self._connection.rollback()
            except sqlite3.Error as e:
                logger.error(f"Rollback failed: {e}")
            raise
        finally:
            self._depth = 0


def _normalize(symbol: str) -> str:
    return symbol.upper().strip()


def _row_to_account(row: Any) -> Account:
    return Account(
        account_id=int(row["account_id"]),
        client_id=int(row["client_id"]),
        advisor_id=int(row["advisor_id"]),
        profile_name=row["profile_name"],
        reinvest=bool(row["reinvest"]),
        cash_balance=Decimal(row["cash_balance"]),
        name=row["name"],
    )


def _row_to_holding(row: Any) -> Holding:
    return Holding(
        account_id=int(row["account_id"]),
        symbol=row["symbol"],
        shares=Decimal(row["shares"]),
        acb=Decimal(row["acb"]),
    )
