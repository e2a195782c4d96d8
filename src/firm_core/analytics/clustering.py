"""
Grouping of accounts by sector-preference similarity.

Accounts are described by their market value per sector. A fixed number of
randomly initialized representatives is refined k-means style: assign each
account to a representative, move each representative to the mean of its
members, and stop once the largest member-to-representative similarity
falls within the tolerance or the iteration bound is reached.

Assignment picks the representative with the LOWEST cosine similarity score.
"""

import logging
from collections import defaultdict
from typing import Optional

import numpy as np

from firm_core.analytics.similarity import cosine_similarity
from firm_core.analytics.vectors import sector_value_vectors
from firm_core.logging.decision_log import DecisionLogger
from firm_core.models import CASH_SECTOR
from firm_core.store.base import PortfolioStore, StorageError

logger = logging.getLogger(__name__)

Vector = dict[str, float]


class AdvisorClusterer:
    """Clusters accounts into advisor groups."""

    def __init__(
        self,
        store: PortfolioStore,
        seed: Optional[int] = None,
        decision_logger: Optional[DecisionLogger] = None,
    ):
        """
        Initialize the clusterer.

        Args:
            store: Store holding accounts, holdings and prices
            seed: Seed for representative initialization (None for entropy)
            decision_logger: Optional audit log for clustering runs
        """
        self.store = store
        self.seed = seed
        self.decision_logger = decision_logger

    def sector_value_vectors(self) -> dict[int, Vector]:
        """Get market value per sector for every account with holdings."""
        return sector_value_vectors(self.store)

    def initialize_representatives(
        self,
        max_groups: int,
        sectors: list[str],
        rng: Optional[np.random.Generator] = None,
    ) -> list[Vector]:
        """
        Create representatives with random per-sector values in [0, 100).

        Args:
            max_groups: Number of representatives
            sectors: Sector names to populate (the cash pseudo-sector is skipped)
            rng: Random generator (defaults to one seeded from self.seed)

        Returns:
            List of max_groups representative vectors
        """
        if rng is None:
            rng = np.random.default_rng(self.seed)
        sectors = [s for s in sectors if s != CASH_SECTOR]

        representatives = []
        for _ in range(max_groups):
            values = rng.random(len(sectors)) * 100
            representatives.append(
                {sector: float(v) for sector, v in zip(sectors, values)}
            )
        return representatives

    @staticmethod
    def assign_to_clusters(
        vectors: dict[int, Vector],
        representatives: list[Vector],
    ) -> dict[int, int]:
        """
        Assign each account to the representative with the lowest similarity.

        Ties go to the lowest representative index.

        Returns:
            Dictionary mapping account_id -> representative index
        """
        assignments = {}
        for account_id, vector in vectors.items():
            lowest = float("inf")
            index = -1
            for i, representative in enumerate(representatives):
                score = cosine_similarity(vector, representative)
                if score < lowest:
                    lowest = score
                    index = i
            assignments[account_id] = index
        return assignments

    @staticmethod
    def update_representatives(
        vectors: dict[int, Vector],
        assignments: dict[int, int],
        representatives: list[Vector],
    ) -> list[Vector]:
        """
        Move each representative to the per-sector mean of its members.

        A representative without members becomes the empty vector.

        Returns:
            New list of representatives, same length as the input
        """
        members: dict[int, list[Vector]] = defaultdict(list)
        for account_id, index in assignments.items():
            members[index].append(vectors[account_id])

        updated = []
        for i in range(len(representatives)):
            group = members.get(i)
            if not group:
                updated.append({})
                continue
            sectors = sorted(set().union(*group))
            matrix = np.array([[v.get(s, 0.0) for s in sectors] for v in group])
            means = matrix.mean(axis=0)
            updated.append({s: float(m) for s, m in zip(sectors, means)})
        return updated

    @staticmethod
    def max_similarity(
        vectors: dict[int, Vector],
        assignments: dict[int, int],
        representatives: list[Vector],
    ) -> float:
        """Get the largest similarity between an account and its representative."""
        return max(
            (
                cosine_similarity(vector, representatives[assignments[account_id]])
                for account_id, vector in vectors.items()
            ),
            default=0.0,
        )

    def advisor_groups(
        self,
        tolerance: float,
        max_groups: int,
    ) -> set[frozenset[int]]:
        """
        Cluster accounts with holdings into at most max_groups groups.

        The representative count stays fixed at max_groups; max_groups also
        bounds the number of refinement iterations.

        Args:
            tolerance: Convergence threshold on the max similarity
            max_groups: Number of representatives and iteration bound

        Returns:
            Set of groups, each a frozenset of account ids; empty when
            max_groups < 1, no account has holdings, or on storage failure
        """
        if max_groups < 1:
            return set()

        try:
            vectors = self.sector_value_vectors()
            sectors = self.store.sector_names()
        except StorageError as e:
            logger.error(f"Advisor clustering failed: {e}")
            return set()

        if not vectors:
            return set()

        representatives = self.initialize_representatives(max_groups, sectors)
        assignments: dict[int, int] = {}
        converged = False
        iteration = 1

        while not converged and iteration <= max_groups:
            assignments = self.assign_to_clusters(vectors, representatives)
            representatives = self.update_representatives(
                vectors, assignments, representatives
            )
            converged = self.max_similarity(vectors, assignments, representatives) <= tolerance
            iteration += 1

        grouped: dict[int, set[int]] = defaultdict(set)
        for account_id, index in assignments.items():
            grouped[index].add(account_id)
        groups = {frozenset(g) for g in grouped.values()}

        logger.info(
            f"Formed {len(groups)} advisor groups from {len(vectors)} accounts "
            f"in {iteration - 1} iterations"
        )
        if self.decision_logger is not None:
            self.decision_logger.log_advisor_groups_formed(
                tolerance, max_groups, groups, iteration - 1
            )
        return groups
