"""
Tests for trade execution and average cost basis accounting.
"""

from decimal import Decimal

import pytest

from firm_core.logging.decision_log import DecisionLogger
from firm_core.models import ActionType
from firm_core.store.base import StorageError
from firm_core.trading.executor import TradeExecutor, calculate_new_acb


class TestCalculateNewAcb:
    """Tests for the calculate_new_acb function."""

    def test_first_purchase(self):
        """Test that the first purchase sets ACB to the price."""
        assert calculate_new_acb(Decimal("0"), Decimal("0"), Decimal("10"), Decimal("5")) == Decimal("5")

    def test_weighted_average(self):
        """Test ACB is the share-weighted average of purchase prices."""
        acb = calculate_new_acb(Decimal("10"), Decimal("5"), Decimal("10"), Decimal("7"))
        assert acb == Decimal("6")

    def test_stale_acb_ignored_when_no_shares(self):
        """Test a leftover ACB on an emptied position does not carry into new buys."""
        acb = calculate_new_acb(Decimal("0"), Decimal("99"), Decimal("4"), Decimal("3"))
        assert acb == Decimal("3")


class TestBuy:
    """Tests for TradeExecutor.buy."""

    def test_buy_from_fresh_position(self, any_store):
        """Test buying 10 @ 5 from nothing sets shares, ACB and debits cash by 50."""
        executor = TradeExecutor(any_store)

        assert executor.buy(1, "AAA", Decimal("10"), Decimal("5.0"))

        holding = any_store.get_holding(1, "AAA")
        assert holding.shares == Decimal("10")
        assert holding.acb == Decimal("5.0")
        assert any_store.get_cash(1) == Decimal("950")

    def test_buy_then_buy_averages_acb(self, any_store):
        """Test two buys produce the weighted ACB."""
        executor = TradeExecutor(any_store)

        assert executor.buy(1, "AAA", Decimal("10"), Decimal("5.0"))
        assert executor.buy(1, "AAA", Decimal("10"), Decimal("7.0"))

        holding = any_store.get_holding(1, "AAA")
        assert holding.shares == Decimal("20")
        assert holding.acb == Decimal("6.0")
        assert any_store.get_cash(1) == Decimal("880")

    def test_fractional_shares(self, store):
        """Test fractional share purchases are supported."""
        executor = TradeExecutor(store)

        assert executor.buy(1, "XOM", Decimal("1.5"), Decimal("20"))

        assert store.get_holding(1, "XOM").shares == Decimal("1.5")
        assert store.get_cash(1) == Decimal("970")

    def test_insufficient_funds_changes_nothing(self, any_store):
        """Test a buy costing more than the cash balance is refused."""
        executor = TradeExecutor(any_store)
        executor.buy(1, "AAA", Decimal("10"), Decimal("5"))

        assert not executor.buy(1, "AAA", Decimal("1000"), Decimal("5"))

        holding = any_store.get_holding(1, "AAA")
        assert holding.shares == Decimal("10")
        assert holding.acb == Decimal("5")
        assert any_store.get_cash(1) == Decimal("950")

    def test_exact_cash_is_sufficient(self, store):
        """Test a buy costing exactly the cash balance succeeds."""
        executor = TradeExecutor(store)

        assert executor.buy(1, "BBB", Decimal("100"), Decimal("10"))
        assert store.get_cash(1) == Decimal("0")

    @pytest.mark.parametrize("shares,price", [
        (Decimal("0"), Decimal("5")),
        (Decimal("-1"), Decimal("5")),
        (Decimal("1"), Decimal("-5")),
        ("not-a-number", Decimal("5")),
        (Decimal("NaN"), Decimal("5")),
    ])
    def test_invalid_amounts_rejected(self, store, shares, price):
        """Test non-positive shares, negative prices and junk input are rejected."""
        executor = TradeExecutor(store)

        assert not executor.buy(1, "AAA", shares, price)
        assert store.get_holding(1, "AAA") is None
        assert store.get_cash(1) == Decimal("1000")

    def test_unknown_account_or_symbol_rejected(self, store):
        """Test buys against unknown entities are rejected."""
        executor = TradeExecutor(store)

        assert not executor.buy(99, "AAA", Decimal("1"), Decimal("5"))
        assert not executor.buy(1, "ZZZ", Decimal("1"), Decimal("5"))
        assert not executor.buy(1, "", Decimal("1"), Decimal("5"))

    def test_zero_price_buy_dilutes_acb(self, store):
        """Test a buy at price 0 is allowed and lowers the ACB."""
        executor = TradeExecutor(store)
        executor.buy(1, "AAA", Decimal("10"), Decimal("5"))

        assert executor.buy(1, "AAA", Decimal("10"), Decimal("0"))

        holding = store.get_holding(1, "AAA")
        assert holding.shares == Decimal("20")
        assert holding.acb == Decimal("2.5")
        assert store.get_cash(1) == Decimal("950")

    def test_symbol_is_case_insensitive(self, store):
        """Test lower-case symbols resolve to the stored instrument."""
        executor = TradeExecutor(store)

        assert executor.buy(1, "aaa", Decimal("2"), Decimal("5"))
        assert store.get_holding(1, "AAA").shares == Decimal("2")


class TestSell:
    """Tests for TradeExecutor.sell."""

    def test_sell_preserves_acb(self, any_store):
        """Test selling reduces shares, keeps ACB and credits cash."""
        executor = TradeExecutor(any_store)
        executor.buy(1, "AAA", Decimal("10"), Decimal("5.0"))
        executor.buy(1, "AAA", Decimal("10"), Decimal("7.0"))
        cash_before = any_store.get_cash(1)

        assert executor.sell(1, "AAA", Decimal("5"), Decimal("8"))

        holding = any_store.get_holding(1, "AAA")
        assert holding.shares == Decimal("15")
        assert holding.acb == Decimal("6.0")
        assert any_store.get_cash(1) == cash_before + Decimal("40")

    def test_sell_entire_position(self, store):
        """Test selling every share leaves a zero holding."""
        executor = TradeExecutor(store)
        executor.buy(1, "AAA", Decimal("10"), Decimal("5"))

        assert executor.sell(1, "AAA", Decimal("10"), Decimal("6"))

        assert store.get_holding(1, "AAA").shares == Decimal("0")
        assert store.get_cash(1) == Decimal("1010")

    def test_insufficient_shares(self, any_store):
        """Test selling more than held is refused without side effects."""
        executor = TradeExecutor(any_store)
        executor.buy(1, "AAA", Decimal("10"), Decimal("5"))

        assert not executor.sell(1, "AAA", Decimal("11"), Decimal("5"))

        assert any_store.get_holding(1, "AAA").shares == Decimal("10")
        assert any_store.get_cash(1) == Decimal("950")

    def test_sell_never_held(self, store):
        """Test selling a stock the account never held is refused."""
        executor = TradeExecutor(store)

        assert not executor.sell(1, "BBB", Decimal("1"), Decimal("10"))
        assert store.get_holding(1, "BBB") is None


class TestRollback:
    """Tests that failed store writes leave no partial trade behind."""

    def test_buy_rolls_back_when_cash_write_fails(self, any_store, monkeypatch):
        """Test a storage failure after the holding write restores the holding."""
        executor = TradeExecutor(any_store)
        executor.buy(1, "AAA", Decimal("10"), Decimal("5"))

        def failing_adjust_cash(account_id, amount):
            raise StorageError("disk full")

        monkeypatch.setattr(any_store, "adjust_cash", failing_adjust_cash)

        assert not executor.buy(1, "AAA", Decimal("10"), Decimal("7"))

        holding = any_store.get_holding(1, "AAA")
        assert holding.shares == Decimal("10")
        assert holding.acb == Decimal("5")
        assert any_store.get_cash(1) == Decimal("950")

    def test_first_buy_rollback_leaves_no_holding(self, any_store, monkeypatch):
        """Test a failed first purchase does not create a holding."""
        executor = TradeExecutor(any_store)

        def failing_adjust_cash(account_id, amount):
            raise StorageError("disk full")

        monkeypatch.setattr(any_store, "adjust_cash", failing_adjust_cash)

        assert not executor.buy(1, "BBB", Decimal("1"), Decimal("10"))

        holding = any_store.get_holding(1, "BBB")
        assert holding is None or holding.shares == Decimal("0")
        assert any_store.get_cash(1) == Decimal("1000")

    def test_sell_rolls_back_when_cash_write_fails(self, any_store, monkeypatch):
        """Test a failed sell keeps the original shares."""
        executor = TradeExecutor(any_store)
        executor.buy(1, "AAA", Decimal("10"), Decimal("5"))

        def failing_adjust_cash(account_id, amount):
            raise StorageError("disk full")

        monkeypatch.setattr(any_store, "adjust_cash", failing_adjust_cash)

        assert not executor.sell(1, "AAA", Decimal("4"), Decimal("6"))

        assert any_store.get_holding(1, "AAA").shares == Decimal("10")
        assert any_store.get_cash(1) == Decimal("950")


class TestAdjustCash:
    """Tests for TradeExecutor.adjust_cash."""

    def test_deposit_and_withdraw(self, store):
        """Test positive and negative adjustments."""
        executor = TradeExecutor(store)

        assert executor.adjust_cash(1, Decimal("250"))
        assert executor.adjust_cash(1, Decimal("-100"))
        assert store.get_cash(1) == Decimal("1150")

    def test_withdrawal_may_go_negative(self, store):
        """Test the cash path does not enforce a non-negative balance."""
        executor = TradeExecutor(store)

        assert executor.adjust_cash(3, Decimal("-10"))
        assert store.get_cash(3) == Decimal("-10")

    def test_unknown_account(self, store):
        """Test adjusting an unknown account fails."""
        assert not TradeExecutor(store).adjust_cash(42, Decimal("10"))


class TestTradeShares:
    """Tests for TradeExecutor.trade_shares."""

    @pytest.mark.parametrize("symbol", ["cash", "CASH", "Cash", " cash "])
    def test_cash_symbol_is_case_insensitive(self, store, symbol):
        """Test the cash pseudo-symbol adjusts cash in any case."""
        executor = TradeExecutor(store)

        assert executor.trade_shares(1, symbol, Decimal("100"))
        assert store.get_cash(1) == Decimal("1100")

    def test_cash_withdrawal(self, store):
        """Test a negative amount on the cash symbol withdraws."""
        executor = TradeExecutor(store)

        assert executor.trade_shares(1, "cash", Decimal("-300"))
        assert store.get_cash(1) == Decimal("700")

    def test_positive_buys_at_current_price(self, store):
        """Test positive shares buy at the instrument's price."""
        executor = TradeExecutor(store)

        assert executor.trade_shares(1, "BBB", Decimal("3"))

        holding = store.get_holding(1, "BBB")
        assert holding.shares == Decimal("3")
        assert holding.acb == Decimal("10")
        assert store.get_cash(1) == Decimal("970")

    def test_negative_sells_absolute_amount(self, store):
        """Test negative shares sell at the instrument's price."""
        executor = TradeExecutor(store)
        executor.trade_shares(1, "BBB", Decimal("3"))

        assert executor.trade_shares(1, "BBB", Decimal("-2"))

        assert store.get_holding(1, "BBB").shares == Decimal("1")
        assert store.get_cash(1) == Decimal("990")

    def test_zero_shares_is_a_no_op(self, store):
        """Test trading zero shares reports nothing was traded."""
        executor = TradeExecutor(store)

        assert not executor.trade_shares(1, "BBB", Decimal("0"))
        assert store.get_holding(1, "BBB") is None
        assert store.get_cash(1) == Decimal("1000")

    def test_unknown_instrument_or_account(self, store):
        """Test unknown entities are rejected."""
        executor = TradeExecutor(store)

        assert not executor.trade_shares(1, "ZZZ", Decimal("1"))
        assert not executor.trade_shares(99, "AAA", Decimal("1"))
        assert not executor.trade_shares(99, "cash", Decimal("1"))


class TestTradeLogging:
    """Tests that trades are recorded in the decision log."""

    def test_executed_trade_logged(self, executor: TradeExecutor, decision_logger: DecisionLogger):
        """Test a successful buy writes a TRADE_EXECUTED entry."""
        executor.buy(1, "AAA", Decimal("10"), Decimal("5"))

        entries = decision_logger.filter_by_action_type(ActionType.TRADE_EXECUTED)
        assert len(entries) == 1
        assert entries[0].account_id == 1
        assert entries[0].details["symbol"] == "AAA"
        assert entries[0].details["side"] == "BUY"
        assert Decimal(entries[0].details["acb"]) == Decimal("5")
        assert Decimal(entries[0].details["cash_after"]) == Decimal("950")

    def test_rejected_trade_logged(self, executor: TradeExecutor, decision_logger: DecisionLogger):
        """Test an insufficient-funds buy writes a TRADE_REJECTED entry."""
        executor.buy(1, "AAA", Decimal("1000"), Decimal("5"))

        entries = decision_logger.filter_by_action_type(ActionType.TRADE_REJECTED)
        assert len(entries) == 1
        assert "Insufficient funds" in entries[0].details["reason"]

    def test_cash_adjustment_logged(self, executor: TradeExecutor, decision_logger: DecisionLogger):
        """Test cash adjustments write a CASH_ADJUSTED entry."""
        executor.trade_shares(1, "cash", Decimal("25"))

        entries = decision_logger.filter_by_account(1)
        assert [e.action_type for e in entries] == [ActionType.CASH_ADJUSTED]
        assert Decimal(entries[0].details["cash_after"]) == Decimal("1025")
