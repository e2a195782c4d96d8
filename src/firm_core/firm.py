"""
Facade over the firm core services.

All services share the one store handed to the facade; nothing is kept in
module-level state.
"""

import logging
from decimal import Decimal
from pathlib import Path
from typing import Optional

from firm_core.analytics.clustering import AdvisorClusterer
from firm_core.analytics.recommendations import RecommendationEngine
from firm_core.analytics.valuation import ValuationService
from firm_core.data.loaders import load_snapshot
from firm_core.logging.decision_log import DecisionLogger, configure_logging
from firm_core.models import FirmConfig
from firm_core.store.base import PortfolioStore
from firm_core.store.memory import InMemoryStore
from firm_core.store.sqlite import SqliteStore
from firm_core.trading.dividends import DividendDistributor
from firm_core.trading.executor import TradeExecutor

logger = logging.getLogger(__name__)


class InvestmentFirm:
    """Entry point exposing trading, valuation and analysis operations."""

    def __init__(
        self,
        store: PortfolioStore,
        decision_logger: Optional[DecisionLogger] = None,
        divergence_tolerance: int = 5,
        cluster_seed: Optional[int] = None,
    ):
        """
        Initialize the firm.

        Args:
            store: Store shared by every service
            decision_logger: Optional audit log shared by every service
            divergence_tolerance: Default tolerance for divergent_accounts
            cluster_seed: Seed for advisor clustering
        """
        self.store = store
        self.decision_logger = decision_logger
        self.divergence_tolerance = divergence_tolerance

        self.executor = TradeExecutor(store, decision_logger)
        self.distributor = DividendDistributor(store, self.executor, decision_logger)
        self.valuation = ValuationService(store, decision_logger)
        self.clusterer = AdvisorClusterer(store, cluster_seed, decision_logger)
        self.recommender = RecommendationEngine(store, decision_logger)

    @classmethod
    def from_config(
        cls,
        config: FirmConfig,
        config_path: Optional[str | Path] = None,
        provision: bool = False,
    ) -> "InvestmentFirm":
        """
        Build a firm from configuration.

        The store is a SQLite database when database_path is set, a CSV
        snapshot loaded into memory when snapshot_dir is set, and an empty
        in-memory store otherwise. Operational logging is set up at
        config.log_level.

        Args:
            config: Firm configuration
            config_path: Path the configuration came from (for the audit log)
            provision: Create the SQLite schema if it does not exist

        Returns:
            Configured InvestmentFirm
        """
        configure_logging(config.log_level)

        if config.database_path:
            store: PortfolioStore = SqliteStore.open(config.database_path, provision=provision)
        elif config.snapshot_dir:
            store = load_snapshot(config.snapshot_dir)
        else:
            store = InMemoryStore()
        logger.info(f"Using {store.name} store")

        decision_logger = DecisionLogger(config.decision_log_path)
        if config_path is not None:
            decision_logger.log_config_loaded(config, str(config_path))

        return cls(
            store,
            decision_logger=decision_logger,
            divergence_tolerance=config.divergence_tolerance,
            cluster_seed=config.cluster_seed,
        )

    # -- trading --------------------------------------------------------------

    def buy(self, account_id: int, symbol: str, shares: Decimal, price: Decimal) -> bool:
        return self.executor.buy(account_id, symbol, shares, price)

    def sell(self, account_id: int, symbol: str, shares: Decimal, price: Decimal) -> bool:
        return self.executor.sell(account_id, symbol, shares, price)

    def trade_shares(self, account_id: int, symbol: str, signed_shares: Decimal) -> bool:
        return self.executor.trade_shares(account_id, symbol, signed_shares)

    def adjust_cash(self, account_id: int, amount: Decimal) -> bool:
        return self.executor.adjust_cash(account_id, amount)

    def disburse_dividend(self, symbol: str, dividend_per_share: Decimal) -> int:
        return self.distributor.distribute(symbol, dividend_per_share)

    # -- valuation ------------------------------------------------------------

    def account_value(self, account_id: int) -> Decimal:
        return self.valuation.account_value(account_id)

    def advisor_portfolio_value(self, advisor_id: int) -> Decimal:
        return self.valuation.advisor_portfolio_value(advisor_id)

    def investor_profit(self, client_id: int) -> dict[int, Decimal]:
        return self.valuation.investor_profit(client_id)

    def sector_weights(self, account_id: int) -> dict[str, int]:
        return self.valuation.sector_weights(account_id)

    def divergent_accounts(self, tolerance: Optional[int] = None) -> set[int]:
        """Find divergent accounts, defaulting to the configured tolerance."""
        if tolerance is None:
            tolerance = self.divergence_tolerance
        return self.valuation.divergent_accounts(tolerance)

    # -- analysis -------------------------------------------------------------

    def stock_recommendations(
        self,
        account_id: int,
        max_recommendations: int,
        num_comparators: int,
    ) -> dict[str, bool]:
        return self.recommender.stock_recommendations(
            account_id, max_recommendations, num_comparators
        )

    def advisor_groups(self, tolerance: float, max_groups: int) -> set[frozenset[int]]:
        return self.clusterer.advisor_groups(tolerance, max_groups)
