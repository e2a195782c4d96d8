"""
Analytics module for the firm core.

Provides similarity scoring, valuation and divergence analysis, advisor
clustering and peer-based stock recommendations.
"""

from firm_core.analytics.similarity import cosine_similarity
from firm_core.analytics.vectors import (
    holdings_frame,
    stock_vectors,
    sector_value_vectors,
)
from firm_core.analytics.valuation import ValuationService, to_percentage
from firm_core.analytics.clustering import AdvisorClusterer
from firm_core.analytics.recommendations import RecommendationEngine

__all__ = [
    "cosine_similarity",
    "holdings_frame",
    "stock_vectors",
    "sector_value_vectors",
    "ValuationService",
    "to_percentage",
    "AdvisorClusterer",
    "RecommendationEngine",
]
