"""
Core data models for the investment firm back-office core.

This module defines the fundamental data structures used throughout the system,
including accounts, holdings, instruments, allocation profiles and decision
log entries. All monetary and share quantities use Decimal for precision.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


# Pseudo-symbol used for deposits and withdrawals (matched case-insensitively)
CASH_SYMBOL = "CASH"

# Pseudo-sector that cash balances are reported under
CASH_SECTOR = "Cash"


def is_cash_symbol(symbol: str) -> bool:
    """Return True if the symbol denotes the cash pseudo-instrument."""
    return symbol is not None and symbol.strip().upper() == CASH_SYMBOL


class TradeSide(Enum):
    """Trade direction indicator."""
    BUY = "BUY"
    SELL = "SELL"


class ActionType(Enum):
    """Types of logged actions for the decision log."""
    CONFIG_LOADED = "CONFIG_LOADED"
    TRADE_EXECUTED = "TRADE_EXECUTED"
    TRADE_REJECTED = "TRADE_REJECTED"
    CASH_ADJUSTED = "CASH_ADJUSTED"
    DIVIDEND_DISBURSED = "DIVIDEND_DISBURSED"
    DIVERGENCE_ANALYZED = "DIVERGENCE_ANALYZED"
    RECOMMENDATIONS_GENERATED = "RECOMMENDATIONS_GENERATED"
    ADVISOR_GROUPS_FORMED = "ADVISOR_GROUPS_FORMED"


@dataclass
class Account:
    """
    A client account managed by an advisor.

    Attributes:
        account_id: Unique account identifier
        client_id: Owning client
        advisor_id: Assigned financial advisor
        profile_name: Name of the target allocation profile
        reinvest: Whether dividends are reinvested into the paying stock
        cash_balance: Uninvested cash (may be negative)
        name: Human-readable account name
    """
    account_id: int
    client_id: int
    advisor_id: int
    profile_name: str
    reinvest: bool = False
    cash_balance: Decimal = Decimal("0")
    name: str = ""


@dataclass
class Holding:
    """
    Shares of one instrument held by one account.

    The average cost basis is only meaningful while shares > 0.

    Attributes:
        account_id: Account holding the shares
        symbol: Ticker symbol
        shares: Number of shares (supports fractional)
        acb: Average cost basis per share
    """
    account_id: int
    symbol: str
    shares: Decimal
    acb: Decimal = Decimal("0")

    @property
    def total_cost(self) -> Decimal:
        """Total cost basis for the position (shares * acb)."""
        return self.shares * self.acb


@dataclass
class Instrument:
    """
    A tradable stock.

    Attributes:
        symbol: Ticker symbol
        sector: Name of the sector the stock belongs to
        price: Current price per share
        company_name: Issuing company
    """
    symbol: str
    sector: str
    price: Decimal = Decimal("1")
    company_name: str = ""


@dataclass
class Profile:
    """
    Named target allocation across sectors.

    Attributes:
        name: Profile name referenced by accounts
        target_weights: Sector name -> integer percentage, including "Cash"
    """
    name: str
    target_weights: dict[str, int] = field(default_factory=dict)

    @property
    def total_percentage(self) -> int:
        """Sum of all target percentages."""
        return sum(self.target_weights.values())

    @classmethod
    def create(cls, name: str, target_weights: dict[str, int]) -> "Profile":
        """Build a profile, adding the cash sector at 0% when it is not given."""
        weights = dict(target_weights)
        if not any(sector.lower() == CASH_SECTOR.lower() for sector in weights):
            weights[CASH_SECTOR] = 0
        return cls(name=name, target_weights=weights)


@dataclass
class FirmConfig:
    """
    Runtime configuration loaded from YAML.

    Attributes:
        database_path: SQLite database holding firm data (optional)
        snapshot_dir: Directory with a CSV snapshot of firm data (optional)
        decision_log_path: Path of the append-only decision log
        divergence_tolerance: Default tolerance (percentage points) for drift checks
        cluster_seed: Seed for the advisor clusterer's random initialization
        log_level: Operational logging level name
    """
    database_path: Optional[str] = None
    snapshot_dir: Optional[str] = None
    decision_log_path: str = "output/decision_log.jsonl"
    divergence_tolerance: int = 5
    cluster_seed: Optional[int] = None
    log_level: str = "INFO"


@dataclass
class DecisionLogEntry:
    """
    Entry for the append-only decision log.

    Attributes:
        timestamp: When the action occurred
        action_type: Type of action
        account_id: Account involved (if applicable)
        details: JSON-serializable details dictionary
    """
    timestamp: datetime
    action_type: ActionType
    account_id: Optional[int]
    details: dict

    @classmethod
    def create(
        cls,
        action_type: ActionType,
        account_id: Optional[int],
        details: dict,
    ) -> "DecisionLogEntry":
        """Factory method with auto-generated timestamp."""
        return cls(
            timestamp=datetime.now(),
            action_type=action_type,
            account_id=account_id,
            details=details,
        )
