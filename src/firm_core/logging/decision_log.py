"""
Append-only decision logging for the firm core.

Trades, cash movements, dividends and analyses are logged with timestamps
and their inputs to support auditability. Operational logging setup for
the standard logging module lives here as well.
"""

import json
import logging
from datetime import datetime, date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from firm_core.models import (
    ActionType,
    DecisionLogEntry,
    FirmConfig,
    TradeSide,
)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def configure_logging(
    level: str = "INFO",
    log_file: Optional[str | Path] = None,
) -> None:
    """
    Configure operational logging to stderr and an optional file.

    Args:
        level: Logging level name
        log_file: Optional path of a log file to append to
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


class DecisionLogger:
    """
    Append-only decision logger.

    Writes all decisions to a JSONL file for audit purposes.
    Each line is a complete JSON object representing one action.
    """

    def __init__(self, log_path: str | Path):
        """
        Initialize the decision logger.

        Args:
            log_path: Path to the log file (will be created if not exists)
        """
        self.log_path = Path(log_path)
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: DecisionLogEntry) -> None:
        """
        Write a decision log entry.

        Args:
            entry: DecisionLogEntry to write
        """
        record = {
            "timestamp": entry.timestamp.isoformat(),
            "action_type": entry.action_type.value,
            "account_id": entry.account_id,
            "details": entry.details,
        }

        with open(self.log_path, "a") as f:
            f.write(json.dumps(record, cls=DecimalEncoder) + "\n")

    def log_trade_executed(
        self,
        account_id: int,
        side: TradeSide,
        symbol: str,
        shares: Decimal,
        price: Decimal,
        acb: Decimal,
        cash_after: Decimal,
    ) -> None:
        """
        Log a completed buy or sell.

        Args:
            account_id: Account traded
            side: Trade direction
            symbol: Ticker symbol
            shares: Shares traded
            price: Execution price per share
            acb: Average cost basis after the trade
            cash_after: Cash balance after the trade
        """
        details = {
            "side": side.value,
            "symbol": symbol,
            "shares": str(shares),
            "price": str(price),
            "value": str(shares * price),
            "acb": str(acb),
            "cash_after": str(cash_after),
        }

        entry = DecisionLogEntry.create(
            action_type=ActionType.TRADE_EXECUTED,
            account_id=account_id,
            details=details,
        )
        self.log(entry)

    def log_trade_rejected(
        self,
        account_id: int,
        side: TradeSide,
        symbol: str,
        shares: Decimal,
        price: Decimal,
        reason: str,
    ) -> None:
        """
        Log a trade that was refused or rolled back.

        Args:
            account_id: Account the trade targeted
            side: Trade direction
            symbol: Ticker symbol
            shares: Shares requested
            price: Requested price per share
            reason: Why the trade did not happen
        """
        details = {
            "side": side.value,
            "symbol": symbol,
            "shares": str(shares),
            "price": str(price),
            "reason": reason,
        }

        entry = DecisionLogEntry.create(
            action_type=ActionType.TRADE_REJECTED,
            account_id=account_id,
            details=details,
        )
        self.log(entry)

    def log_cash_adjusted(
        self,
        account_id: int,
        amount: Decimal,
        cash_after: Decimal,
    ) -> None:
        """Log a deposit, withdrawal or cash dividend credit."""
        details = {
            "amount": str(amount),
            "cash_after": str(cash_after),
        }

        entry = DecisionLogEntry.create(
            action_type=ActionType.CASH_ADJUSTED,
            account_id=account_id,
            details=details,
        )
        self.log(entry)

    def log_dividend_disbursed(
        self,
        symbol: str,
        dividend_per_share: Decimal,
        payouts: dict[int, Decimal],
        reinvested_accounts: list[int],
        fractional_total: Decimal,
        shares_settled: int,
    ) -> None:
        """
        Log a dividend distribution across all holders of a stock.

        Args:
            symbol: Ticker symbol paying the dividend
            dividend_per_share: Dividend amount per share
            payouts: Account id -> dividend amount
            reinvested_accounts: Accounts whose dividend bought shares
            fractional_total: Fractional shares accumulated across accounts
            shares_settled: Whole shares the firm must additionally settle
        """
        details = {
            "symbol": symbol,
            "dividend_per_share": str(dividend_per_share),
            "payouts": {str(k): str(v) for k, v in payouts.items()},
            "reinvested_accounts": reinvested_accounts,
            "fractional_total": str(fractional_total),
            "shares_settled": shares_settled,
        }

        entry = DecisionLogEntry.create(
            action_type=ActionType.DIVIDEND_DISBURSED,
            account_id=None,
            details=details,
        )
        self.log(entry)

    def log_divergence_analyzed(
        self,
        tolerance: int,
        accounts_checked: int,
        divergent: set[int],
    ) -> None:
        """
        Log a divergence scan over all accounts.

        Args:
            tolerance: Tolerance in percentage points
            accounts_checked: Number of accounts compared
            divergent: Accounts exceeding the tolerance
        """
        details = {
            "tolerance": tolerance,
            "accounts_checked": accounts_checked,
            "divergent_count": len(divergent),
            "divergent_accounts": sorted(divergent),
        }

        entry = DecisionLogEntry.create(
            action_type=ActionType.DIVERGENCE_ANALYZED,
            account_id=None,
            details=details,
        )
        self.log(entry)

    def log_recommendations_generated(
        self,
        account_id: int,
        recommendations: dict[str, bool],
        num_comparators: int,
    ) -> None:
        """Log buy/sell recommendations produced for an account."""
        details = {
            "num_comparators": num_comparators,
            "buy": sorted(s for s, is_buy in recommendations.items() if is_buy),
            "sell": sorted(s for s, is_buy in recommendations.items() if not is_buy),
        }

        entry = DecisionLogEntry.create(
            action_type=ActionType.RECOMMENDATIONS_GENERATED,
            account_id=account_id,
            details=details,
        )
        self.log(entry)

    def log_advisor_groups_formed(
        self,
        tolerance: float,
        max_groups: int,
        groups: set[frozenset[int]],
        iterations: int,
    ) -> None:
        """Log the outcome of an advisor clustering run."""
        details = {
            "tolerance": tolerance,
            "max_groups": max_groups,
            "iterations": iterations,
            "groups": sorted(sorted(g) for g in groups),
        }

        entry = DecisionLogEntry.create(
            action_type=ActionType.ADVISOR_GROUPS_FORMED,
            account_id=None,
            details=details,
        )
        self.log(entry)

    def log_config_loaded(
        self,
        config: FirmConfig,
        config_path: str,
    ) -> None:
        """
        Log configuration loading.

        Args:
            config: Loaded configuration
            config_path: Path to configuration file
        """
        details = {
            "config_path": config_path,
            "database_path": config.database_path,
            "snapshot_dir": config.snapshot_dir,
            "divergence_tolerance": config.divergence_tolerance,
            "cluster_seed": config.cluster_seed,
            "log_level": config.log_level,
        }

        entry = DecisionLogEntry.create(
            action_type=ActionType.CONFIG_LOADED,
            account_id=None,
            details=details,
        )
        self.log(entry)

    def read_log(self) -> list[DecisionLogEntry]:
        """
        Read all entries from the log file.

        Returns:
            List of DecisionLogEntry objects
        """
        if not self.log_path.exists():
            return []

        entries = []
        with open(self.log_path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                record = json.loads(line)
                entries.append(
                    DecisionLogEntry(
                        timestamp=datetime.fromisoformat(record["timestamp"]),
                        action_type=ActionType(record["action_type"]),
                        account_id=record.get("account_id"),
                        details=record.get("details", {}),
                    )
                )

        return entries

    def filter_by_account(
        self,
        account_id: int,
    ) -> list[DecisionLogEntry]:
        """
        Get log entries for a specific account.

        Args:
            account_id: Account to filter by

        Returns:
            Filtered list of entries
        """
        return [e for e in self.read_log() if e.account_id == account_id]

    def filter_by_action_type(
        self,
        action_type: ActionType,
    ) -> list[DecisionLogEntry]:
        """
        Get log entries of a specific action type.

        Args:
            action_type: Action type to filter by

        Returns:
            Filtered list of entries
        """
        return [e for e in self.read_log() if e.action_type == action_type]


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal, date and set types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, (set, frozenset)):
            return sorted(obj)
        return super().default(obj)
