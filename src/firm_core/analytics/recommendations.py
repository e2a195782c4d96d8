"""
Peer-based stock recommendations.

An account's share-count vector is compared with every other account that
has holdings. The most similar peers vote: a stock the account lacks but most
peers hold is a buy candidate, a stock it holds but most peers lack is a sell
candidate. A secondary pass over the account's unheld stocks can add further
buys while the running recommendation counter is below the limit.
"""

import logging
from typing import Optional

from firm_core.analytics.similarity import cosine_similarity
from firm_core.analytics.vectors import stock_vectors, zero_stock_vector
from firm_core.logging.decision_log import DecisionLogger
from firm_core.store.base import PortfolioStore, StorageError

logger = logging.getLogger(__name__)


class RecommendationEngine:
    """Recommends buys and sells from the holdings of similar accounts."""

    def __init__(
        self,
        store: PortfolioStore,
        decision_logger: Optional[DecisionLogger] = None,
    ):
        self.store = store
        self.decision_logger = decision_logger

    def stock_recommendations(
        self,
        account_id: int,
        max_recommendations: int,
        num_comparators: int,
    ) -> dict[str, bool]:
        """
        Recommend stocks to buy (True) or sell (False) for an account.

        Args:
            account_id: Account to advise
            max_recommendations: Upper bound on majority-vote selections
            num_comparators: Number of most similar peers that vote

        Returns:
            Dictionary mapping symbol -> True (buy) or False (sell); empty for
            an unknown account, non-positive limits or storage failure
        """
        try:
            if not self.store.account_exists(account_id):
                return {}
            if max_recommendations <= 0 or num_comparators <= 0:
                return {}

            vectors = stock_vectors(self.store)
            target = vectors.get(account_id) or zero_stock_vector(self.store)
        except StorageError as e:
            logger.error(f"Recommendations for account {account_id} failed: {e}")
            return {}

        peers = self._closest_peers(account_id, target, vectors, num_comparators)

        def held_count(symbol: str) -> int:
            return sum(1 for p in peers if p.get(symbol, 0.0) != 0)

        def unheld_count(symbol: str) -> int:
            return sum(1 for p in peers if symbol in p and p[symbol] == 0)

        counter = 0
        buy_pool: dict[str, int] = {}
        sell_pool: dict[str, int] = {}

        # Majority pass
        for symbol, shares in target.items():
            held = held_count(symbol)
            unheld = unheld_count(symbol)
            if shares == 0:
                if held > unheld:
                    buy_pool[symbol] = held
                    counter += 1
            elif unheld > held:
                sell_pool[symbol] = unheld
                counter += 1

        recommendations: dict[str, bool] = {}
        for _ in range(max_recommendations):
            best_symbol = None
            best_weight = None
            is_buy = False
            for symbol, weight in buy_pool.items():
                if symbol not in recommendations and (best_weight is None or weight > best_weight):
                    best_symbol, best_weight, is_buy = symbol, weight, True
            for symbol, weight in sell_pool.items():
                if symbol not in recommendations and (best_weight is None or weight > best_weight):
                    best_symbol, best_weight, is_buy = symbol, weight, False
            if best_symbol is not None:
                recommendations[best_symbol] = is_buy

        # Secondary pairwise pass over unheld stocks
        unheld_symbols = [s for s, shares in target.items() if shares == 0]
        held_counts = {s: held_count(s) for s in unheld_symbols}
        for symbol in unheld_symbols:
            for other in unheld_symbols:
                if other == symbol:
                    continue
                chosen = other if held_counts[other] > held_counts[symbol] else symbol
                if counter < max_recommendations:
                    recommendations[chosen] = True
                    counter += 1

        logger.info(
            f"Generated {len(recommendations)} recommendations for account {account_id} "
            f"from {len(peers)} peers"
        )
        if self.decision_logger is not None:
            self.decision_logger.log_recommendations_generated(
                account_id, recommendations, num_comparators
            )
        return recommendations

    @staticmethod
    def _closest_peers(
        account_id: int,
        target: dict[str, float],
        vectors: dict[int, dict[str, float]],
        num_comparators: int,
    ) -> list[dict[str, float]]:
        similarities = [
            (other_id, cosine_similarity(target, vector))
            for other_id, vector in vectors.items()
            if other_id != account_id
        ]
        similarities.sort(key=lambda item: (-item[1], item[0]))
        return [vectors[other_id] for other_id, _ in similarities[:num_comparators]]
