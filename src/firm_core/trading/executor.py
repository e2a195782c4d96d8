"""
Trade execution with average-cost-basis accounting.

Every buy and sell updates the holding's shares, its ACB and the account's
cash balance inside one store transaction, so callers never observe a
partially applied trade. Failures are logged and reported as False.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from firm_core.errors import (
    InsufficientFundsError,
    InsufficientResourceError,
    InsufficientSharesError,
    ValidationError,
)
from firm_core.logging.decision_log import DecisionLogger
from firm_core.models import TradeSide, is_cash_symbol
from firm_core.store.base import PortfolioStore, StorageError

logger = logging.getLogger(__name__)


def calculate_new_acb(
    current_shares: Decimal,
    current_acb: Decimal,
    shares_bought: Decimal,
    price: Decimal,
) -> Decimal:
    """
    Calculate the average cost basis after a purchase.

    new ACB = (ACB * shares + bought * price) / (shares + bought)

    Args:
        current_shares: Shares held before the purchase
        current_acb: ACB before the purchase (ignored when no shares are held)
        shares_bought: Shares purchased
        price: Purchase price per share

    Returns:
        New average cost basis per share
    """
    if current_shares <= 0:
        current_shares = Decimal("0")
        current_acb = Decimal("0")
    total_shares = current_shares + shares_bought
    if total_shares == 0:
        return Decimal("0")
    return (current_acb * current_shares + shares_bought * price) / total_shares


class TradeExecutor:
    """
    Executes buys, sells and cash adjustments against a store.

    Holds no state besides its collaborators.
    """

    def __init__(
        self,
        store: PortfolioStore,
        decision_logger: Optional[DecisionLogger] = None,
    ):
        """
        Initialize the executor.

        Args:
            store: Store holding accounts, holdings and prices
            decision_logger: Optional audit log for trades and rejections
        """
        self.store = store
        self.decision_logger = decision_logger

    def buy(
        self,
        account_id: int,
        symbol: str,
        shares: Decimal,
        price: Decimal,
    ) -> bool:
        """
        Buy shares for an account.

        Args:
            account_id: Account making the purchase
            symbol: Ticker symbol
            shares: Number of shares (fractional allowed, must be > 0)
            price: Price per share (must be >= 0)

        Returns:
            True if the trade was applied, False otherwise
        """
        return self._execute(TradeSide.BUY, account_id, symbol, shares, price)

    def sell(
        self,
        account_id: int,
        symbol: str,
        shares: Decimal,
        price: Decimal,
    ) -> bool:
        """
        Sell shares from an account. The holding's ACB is left unchanged.

        Args:
            account_id: Account making the sale
            symbol: Ticker symbol
            shares: Number of shares (must be > 0 and <= shares held)
            price: Price per share (must be >= 0)

        Returns:
            True if the trade was applied, False otherwise
        """
        return self._execute(TradeSide.SELL, account_id, symbol, shares, price)

    def adjust_cash(self, account_id: int, amount: Decimal) -> bool:
        """
        Deposit (positive) or withdraw (negative) cash, bypassing holdings.

        Args:
            account_id: Account to adjust
            amount: Signed cash amount

        Returns:
            True if the balance was updated, False otherwise
        """
        try:
            amount = _to_decimal(amount, "amount")
        except ValidationError as e:
            logger.warning(f"Cash adjustment rejected for account {account_id}: {e}")
            return False

        try:
            if not self.store.account_exists(account_id):
                logger.warning(f"Cash adjustment rejected: unknown account {account_id}")
                return False
            with self.store.transaction():
                self.store.adjust_cash(account_id, amount)
                cash_after = self.store.get_cash(account_id)
        except StorageError as e:
            logger.error(f"Cash adjustment failed for account {account_id}: {e}")
            return False

        logger.info(f"Adjusted cash for account {account_id} by {amount}")
        if self.decision_logger is not None:
            self.decision_logger.log_cash_adjusted(account_id, amount, cash_after)
        return True

    def trade_shares(
        self,
        account_id: int,
        symbol: str,
        signed_shares: Decimal,
    ) -> bool:
        """
        Trade at the instrument's current price, dispatching on sign and symbol.

        The cash pseudo-symbol adjusts cash by the signed amount; otherwise a
        positive amount buys and a negative amount sells its absolute value.

        Args:
            account_id: Account to trade
            symbol: Ticker symbol or the cash pseudo-symbol
            signed_shares: Shares to buy (positive) or sell (negative)

        Returns:
            True if the trade or adjustment was applied, False otherwise
        """
        if symbol is None or not symbol.strip():
            logger.warning(f"Trade rejected for account {account_id}: no symbol given")
            return False

        if is_cash_symbol(symbol):
            return self.adjust_cash(account_id, signed_shares)

        try:
            signed_shares = _to_decimal(signed_shares, "shares")
            if not self.store.account_exists(account_id):
                raise ValidationError(f"Unknown account: {account_id}")
            if not self.store.instrument_exists(symbol):
                raise ValidationError(f"Unknown instrument: {symbol}")
            price = self.store.get_price(symbol)
        except (ValidationError, StorageError) as e:
            logger.warning(f"Trade rejected for account {account_id}: {e}")
            return False

        if signed_shares > 0:
            return self.buy(account_id, symbol, signed_shares, price)
        if signed_shares < 0:
            return self.sell(account_id, symbol, -signed_shares, price)

        logger.info(f"No shares to trade for account {account_id} in {symbol}")
        return False

    def _execute(
        self,
        side: TradeSide,
        account_id: int,
        symbol: str,
        shares: Decimal,
        price: Decimal,
    ) -> bool:
        try:
            symbol, shares, price = self._validate(account_id, symbol, shares, price)
        except ValidationError as e:
            logger.warning(f"{side.value} rejected for account {account_id}: {e}")
            self._log_rejection(account_id, side, symbol, shares, price, str(e))
            return False

        try:
            with self.store.transaction():
                if side == TradeSide.BUY:
                    acb = self._apply_buy(account_id, symbol, shares, price)
                else:
                    acb = self._apply_sell(account_id, symbol, shares, price)
                cash_after = self.store.get_cash(account_id)
        except InsufficientResourceError as e:
            logger.warning(f"{side.value} rejected for account {account_id}: {e}")
            self._log_rejection(account_id, side, symbol, shares, price, str(e))
            return False
        except StorageError as e:
            logger.error(f"{side.value} failed for account {account_id}, rolled back: {e}")
            self._log_rejection(account_id, side, symbol, shares, price, str(e))
            return False

        logger.info(
            f"{side.value} {shares} {symbol} @ {price} for account {account_id}"
        )
        if self.decision_logger is not None:
            self.decision_logger.log_trade_executed(
                account_id, side, symbol, shares, price, acb, cash_after
            )
        return True

    def _validate(
        self,
        account_id: int,
        symbol: str,
        shares: Decimal,
        price: Decimal,
    ) -> tuple[str, Decimal, Decimal]:
        if symbol is None or not symbol.strip():
            raise ValidationError("Symbol is required")
        symbol = symbol.upper().strip()
        shares = _to_decimal(shares, "shares")
        price = _to_decimal(price, "price")
        if shares <= 0:
            raise ValidationError(f"Shares must be positive: {shares}")
        if price < 0:
            raise ValidationError(f"Price cannot be negative: {price}")
        if not self.store.account_exists(account_id):
            raise ValidationError(f"Unknown account: {account_id}")
        if not self.store.instrument_exists(symbol):
            raise ValidationError(f"Unknown instrument: {symbol}")
        return symbol, shares, price

    def _apply_buy(
        self,
        account_id: int,
        symbol: str,
        shares: Decimal,
        price: Decimal,
    ) -> Decimal:
        cost = shares * price
        cash = self.store.get_cash(account_id)
        if cash < cost:
            raise InsufficientFundsError(
                f"Insufficient funds: need {cost}, have {cash}",
                account_id=account_id,
                required=cost,
                available=cash,
            )

        holding = self.store.get_holding(account_id, symbol)
        current_shares = holding.shares if holding is not None else Decimal("0")
        current_acb = holding.acb if holding is not None else Decimal("0")

        new_acb = calculate_new_acb(current_shares, current_acb, shares, price)
        new_shares = max(current_shares, Decimal("0")) + shares

        self.store.set_holding(account_id, symbol, new_shares, new_acb)
        self.store.adjust_cash(account_id, -cost)
        return new_acb

    def _apply_sell(
        self,
        account_id: int,
        symbol: str,
        shares: Decimal,
        price: Decimal,
    ) -> Decimal:
        holding = self.store.get_holding(account_id, symbol)
        held = holding.shares if holding is not None else Decimal("0")
        if holding is None or held < shares:
            raise InsufficientSharesError(
                f"Insufficient shares of {symbol}: need {shares}, have {held}",
                account_id=account_id,
                required=shares,
                available=held,
            )

        self.store.set_holding(account_id, symbol, held - shares, holding.acb)
        self.store.adjust_cash(account_id, shares * price)
        return holding.acb

    def _log_rejection(
        self,
        account_id: int,
        side: TradeSide,
        symbol: str,
        shares: Decimal,
        price: Decimal,
        reason: str,
    ) -> None:
        if self.decision_logger is not None:
            self.decision_logger.log_trade_rejected(
                account_id, side, symbol, shares, price, reason
            )


def _to_decimal(value, field_name: str) -> Decimal:
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"Invalid {field_name}: {value!r}") from e
    if not result.is_finite():
        raise ValidationError(f"Invalid {field_name}: {value!r}")
    return result
