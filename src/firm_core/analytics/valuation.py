"""
Portfolio valuation and divergence analysis.

Values accounts at current prices, reports unrealized profit against the
average cost basis, and compares each account's sector mix with the target
weights of its allocation profile.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from firm_core.logging.decision_log import DecisionLogger
from firm_core.models import CASH_SECTOR
from firm_core.store.base import PortfolioStore, StorageError

logger = logging.getLogger(__name__)


def to_percentage(value: Decimal, total: Decimal) -> int:
    """
    Convert a value to an integer percentage of a total, rounding half up.

    Args:
        value: Part of the total
        total: Whole amount (must be > 0)

    Returns:
        Rounded percentage
    """
    return int((value * 100 / total).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class ValuationService:
    """Read-only valuation queries over a store."""

    def __init__(
        self,
        store: PortfolioStore,
        decision_logger: Optional[DecisionLogger] = None,
    ):
        self.store = store
        self.decision_logger = decision_logger

    def account_value(self, account_id: int) -> Decimal:
        """
        Calculate cash plus the market value of every holding.

        Args:
            account_id: Account to value

        Returns:
            Total account value, or 0 for an unknown account

        Raises:
            StorageError: If the store cannot be read
        """
        if not self.store.account_exists(account_id):
            return Decimal("0")

        total = self.store.get_cash(account_id)
        for holding in self.store.holdings_for_account(account_id):
            total += holding.shares * self.store.get_price(holding.symbol)
        return total

    def advisor_portfolio_value(self, advisor_id: int) -> Decimal:
        """
        Calculate the total value of all accounts assigned to an advisor.

        Args:
            advisor_id: Advisor whose accounts to value

        Returns:
            Sum of account values, or -1 for an unknown advisor

        Raises:
            StorageError: If the store cannot be read
        """
        if not self.store.advisor_exists(advisor_id):
            return Decimal("-1")

        return sum(
            (self.account_value(a.account_id)
             for a in self.store.accounts_for_advisor(advisor_id)),
            Decimal("0"),
        )

    def investor_profit(self, client_id: int) -> dict[int, Decimal]:
        """
        Calculate unrealized profit per account of a client.

        Profit for a holding is shares x (current price - ACB).

        Args:
            client_id: Client whose accounts to evaluate

        Returns:
            Dictionary mapping account_id -> profit; empty for an unknown
            client or on storage failure
        """
        try:
            if not self.store.client_exists(client_id):
                return {}

            profits: dict[int, Decimal] = {}
            for account in self.store.accounts_for_client(client_id):
                profit = Decimal("0")
                for holding in self.store.holdings_for_account(account.account_id):
                    price = self.store.get_price(holding.symbol)
                    profit += holding.shares * price - holding.total_cost
                profits[account.account_id] = profit
            return profits
        except StorageError as e:
            logger.error(f"Profit calculation for client {client_id} failed: {e}")
            return {}

    def sector_weights(self, account_id: int) -> dict[str, int]:
        """
        Calculate an account's integer percentage allocation per sector.

        Cash is reported under the "Cash" pseudo-sector. Every known sector
        appears; when the total value is not positive all weights are 0.

        Args:
            account_id: Account to analyze

        Returns:
            Dictionary mapping sector -> percentage; empty for an unknown
            account or on storage failure
        """
        try:
            if not self.store.account_exists(account_id):
                return {}
            return self._sector_weights(account_id)
        except StorageError as e:
            logger.error(f"Sector weights for account {account_id} failed: {e}")
            return {}

    def divergent_accounts(self, tolerance: int) -> set[int]:
        """
        Find accounts whose sector weights drift from their profile targets.

        An account diverges when, for any sector of its profile or cash
        (missing weights counted as 0), |current - target| > tolerance.
        Sectors the profile does not list are not checked.

        Args:
            tolerance: Allowed drift in percentage points

        Returns:
            Set of divergent account ids; empty for a negative tolerance or
            on storage failure
        """
        if tolerance < 0:
            return set()

        divergent: set[int] = set()
        try:
            accounts = self.store.list_accounts()
            for account in accounts:
                current = self._sector_weights(account.account_id)
                target = self.store.profile_weights(account.profile_name)

                for sector in set(target) | {CASH_SECTOR}:
                    drift = abs(current.get(sector, 0) - target.get(sector, 0))
                    if drift > tolerance:
                        divergent.add(account.account_id)
                        break
        except StorageError as e:
            logger.error(f"Divergence analysis failed: {e}")
            return set()

        logger.info(
            f"Divergence check at tolerance {tolerance}: "
            f"{len(divergent)} of {len(accounts)} accounts divergent"
        )
        if self.decision_logger is not None:
            self.decision_logger.log_divergence_analyzed(tolerance, len(accounts), divergent)
        return divergent

    def _sector_weights(self, account_id: int) -> dict[str, int]:
        sector_values: dict[str, Decimal] = {}
        for holding in self.store.holdings_for_account(account_id):
            instrument = self.store.get_instrument(holding.symbol)
            if instrument is None:
                raise StorageError(f"Unknown instrument: {holding.symbol}")
            value = holding.shares * instrument.price
            sector_values[instrument.sector] = sector_values.get(instrument.sector, Decimal("0")) + value

        cash = self.store.get_cash(account_id)
        sector_values[CASH_SECTOR] = sector_values.get(CASH_SECTOR, Decimal("0")) + cash

        total = sum(sector_values.values(), Decimal("0"))

        weights = {sector: 0 for sector in self.store.sector_names()}
        if total <= 0:
            for sector in sector_values:
                weights[sector] = 0
            return weights

        for sector, value in sector_values.items():
            weights[sector] = to_percentage(value, total)
        return weights
