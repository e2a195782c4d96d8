"""
Pytest fixtures for the firm core tests.

Provides a small firm (sectors, instruments, profiles, clients, advisors and
accounts) in both the in-memory and SQLite stores.
"""

from decimal import Decimal
from pathlib import Path

import pytest

from firm_core.logging.decision_log import DecisionLogger
from firm_core.store.memory import InMemoryStore
from firm_core.store.sqlite import SqliteStore
from firm_core.trading.executor import TradeExecutor


def populate_firm(store):
    """
    Fill a store with the reference firm used across tests.

    Sectors: Tech, Energy (plus the built-in Cash)
    Instruments: AAA (Tech, 5), BBB (Tech, 10), XOM (Energy, 20)
    Profiles: Growth (Tech 60 / Energy 30 / Cash 10),
              Balanced (Tech 40 / Energy 40 / Cash 20),
              Even (Tech 50 / Cash 50)
    Accounts:
        1: client 1, advisor 1, Growth, cash 1000
        2: client 1, advisor 2, Balanced, reinvests dividends, cash 500
        3: client 2, advisor 2, Even, cash 0
    """
    store.add_sector("Tech")
    store.add_sector("Energy")

    store.add_instrument("AAA", "Tech", Decimal("5"), "Alpha Corp")
    store.add_instrument("BBB", "Tech", Decimal("10"), "Beta Corp")
    store.add_instrument("XOM", "Energy", Decimal("20"), "Exxon Mobil")

    store.add_profile("Growth", {"Tech": 60, "Energy": 30, "Cash": 10})
    store.add_profile("Balanced", {"Tech": 40, "Energy": 40, "Cash": 20})
    store.add_profile("Even", {"Tech": 50, "Cash": 50})

    store.add_client(1)
    store.add_client(2)
    store.add_advisor(1)
    store.add_advisor(2)

    store.add_account(1, 1, "Growth", cash_balance=Decimal("1000"), account_id=1)
    store.add_account(1, 2, "Balanced", reinvest=True, cash_balance=Decimal("500"), account_id=2)
    store.add_account(2, 2, "Even", cash_balance=Decimal("0"), account_id=3)
    return store


@pytest.fixture
def store() -> InMemoryStore:
    """Create an in-memory store holding the reference firm."""
    return populate_firm(InMemoryStore())


@pytest.fixture
def sqlite_store():
    """Create a provisioned in-memory SQLite store holding the reference firm."""
    sqlite = SqliteStore.open(":memory:", provision=True)
    populate_firm(sqlite)
    yield sqlite
    sqlite.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request):
    """Run a test against both store implementations."""
    if request.param == "memory":
        yield populate_firm(InMemoryStore())
    else:
        sqlite = SqliteStore.open(":memory:", provision=True)
        populate_firm(sqlite)
        yield sqlite
        sqlite.close()


@pytest.fixture
def decision_logger(tmp_path: Path) -> DecisionLogger:
    """Create a decision logger writing into a temporary directory."""
    return DecisionLogger(tmp_path / "decision_log.jsonl")


@pytest.fixture
def executor(store: InMemoryStore, decision_logger: DecisionLogger) -> TradeExecutor:
    """Create a trade executor over the in-memory store."""
    return TradeExecutor(store, decision_logger)


def write_snapshot(directory: Path) -> Path:
    """Write a small firm snapshot as CSV files."""
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "sectors.csv").write_text("sector\nTech\nEnergy\n")
    (directory / "instruments.csv").write_text(
        "symbol,sector,price,company_name\n"
        "AAA,Tech,5,Alpha Corp\n"
        "XOM,Energy,20.50,\n"
    )
    (directory / "profiles.csv").write_text(
        "profile_name,sector,percentage\n"
        "Growth,Tech,60\n"
        "Growth,Energy,30\n"
        "Growth,Cash,10\n"
        "AllTech,Tech,100\n"
    )
    (directory / "accounts.csv").write_text(
        "account_id,client_id,advisor_id,profile_name,reinvest,cash_balance,name\n"
        "1,10,100,Growth,false,1000.00,Main\n"
        "2,10,200,AllTech,True,250.5,\n"
        "3,11,200,Growth,yes,0,\n"
    )
    (directory / "holdings.csv").write_text(
        "account_id,symbol,shares,acb\n"
        "1,AAA,10,4.50\n"
        "1,XOM,2.5,19\n"
        "2,aaa,1.25,5\n"
    )
    (directory / "fractional_carry.csv").write_text("symbol,shares\nAAA,0.75\n")
    return directory


@pytest.fixture
def snapshot_dir(tmp_path: Path) -> Path:
    """
    Create a CSV snapshot directory.

    Accounts 1 (client 10, advisor 100) and 2, 3 (advisor 200) hold AAA and
    XOM; AAA carries 0.75 fractional shares.
    """
    return write_snapshot(tmp_path / "snapshot")
