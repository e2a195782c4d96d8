"""
Dividend distribution with firm-level fractional share carry.

Each holder of a paying stock receives shares x dividend-per-share. Accounts
marked to reinvest use the payout to buy more of the stock; the sub-share
remainders are pooled into a firm-wide carry per symbol, and the firm settles
whole shares whenever the pool runs short.
"""

import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Optional

from firm_core.logging.decision_log import DecisionLogger
from firm_core.store.base import PortfolioStore, StorageError
from firm_core.trading.executor import TradeExecutor

logger = logging.getLogger(__name__)


class DividendDistributor:
    """Pays dividends to every holder of a stock."""

    def __init__(
        self,
        store: PortfolioStore,
        executor: Optional[TradeExecutor] = None,
        decision_logger: Optional[DecisionLogger] = None,
    ):
        """
        Initialize the distributor.

        Args:
            store: Store holding accounts, holdings and prices
            executor: Executor used for cash credits and reinvestment buys
            decision_logger: Optional audit log for distributions
        """
        self.store = store
        self.executor = executor or TradeExecutor(store, decision_logger)
        self.decision_logger = decision_logger

    def distribute(self, symbol: str, dividend_per_share: Decimal) -> int:
        """
        Distribute a dividend to all holders of a stock.

        Non-reinvesting accounts have the payout credited to cash. Reinvesting
        accounts instead buy dividend / price shares at the current price, paid
        from their cash, and the fractional part of that purchase is added to
        the firm-wide total reconciled against the carry afterwards.

        Args:
            symbol: Ticker symbol paying the dividend
            dividend_per_share: Dividend amount per share held (>= 0)

        Returns:
            Whole shares the firm must settle to cover the fractional total,
            or -1 on invalid input or storage failure
        """
        if symbol is None or not symbol.strip():
            logger.warning("Dividend rejected: no symbol given")
            return -1
        try:
            dividend_per_share = Decimal(str(dividend_per_share))
        except (InvalidOperation, ValueError):
            logger.warning(f"Dividend rejected: invalid amount {dividend_per_share!r}")
            return -1
        if not dividend_per_share.is_finite() or dividend_per_share < 0:
            logger.warning(f"Dividend rejected: invalid amount {dividend_per_share}")
            return -1

        symbol = symbol.upper().strip()

        try:
            if not self.store.instrument_exists(symbol):
                logger.warning(f"Dividend rejected: unknown instrument {symbol}")
                return -1
            price = self.store.get_price(symbol)
            if price <= 0:
                logger.warning(f"Dividend rejected: {symbol} has non-positive price {price}")
                return -1

            payouts: dict[int, Decimal] = {}
            reinvested: list[int] = []
            fractional_total = Decimal("0")

            for holding in self.store.holders_of(symbol):
                account = self.store.get_account(holding.account_id)
                if account is None:
                    continue

                dividend = holding.shares * dividend_per_share
                if dividend <= 0:
                    continue

                if account.reinvest:
                    shares_to_buy = dividend / price
                    fractional_total += (dividend % price) / price
                    if self.executor.buy(account.account_id, symbol, shares_to_buy, price):
                        payouts[account.account_id] = dividend
                        reinvested.append(account.account_id)
                    else:
                        logger.warning(
                            f"Reinvestment failed for account {account.account_id}"
                        )
                else:
                    if not self.executor.adjust_cash(account.account_id, dividend):
                        logger.error(
                            f"Dividend credit failed for account {account.account_id}"
                        )
                        return -1
                    payouts[account.account_id] = dividend

            shares_settled = self.reconcile_fractional_carry(symbol, fractional_total)
        except StorageError as e:
            logger.error(f"Dividend distribution for {symbol} failed: {e}")
            return -1

        logger.info(
            f"Distributed {dividend_per_share}/share of {symbol} to {len(payouts)} accounts, "
            f"firm settles {shares_settled} shares"
        )
        if self.decision_logger is not None:
            self.decision_logger.log_dividend_disbursed(
                symbol,
                dividend_per_share,
                payouts,
                reinvested,
                fractional_total,
                shares_settled,
            )
        return shares_settled

    def reconcile_fractional_carry(
        self,
        symbol: str,
        new_fractional: Decimal,
    ) -> int:
        """
        Offset new fractional shares against the firm's carry for a symbol.

        If the carry covers the new amount it is drawn down and nothing is
        settled. Otherwise the shortfall is rounded up to whole shares, and
        the surplus from that rounding becomes the new carry.

        Args:
            symbol: Ticker symbol
            new_fractional: Fractional shares to cover

        Returns:
            Whole shares the firm must settle

        Raises:
            StorageError: If the carry cannot be read or written
        """
        with self.store.transaction():
            carry = self.store.get_fractional_carry(symbol)
            if carry > new_fractional:
                self.store.set_fractional_carry(symbol, carry - new_fractional)
                return 0

            rounded = math.ceil(new_fractional - carry)
            self.store.set_fractional_carry(symbol, carry + rounded - new_fractional)
            return rounded
