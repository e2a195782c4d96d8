"""
Investment Firm Back-Office Core (firm-core)

The analytic and transactional engine of a simulated investment-management
back office. It executes share trades with average-cost-basis accounting,
distributes dividends with firm-level fractional-share carry, values accounts
and advisor books, detects accounts that have drifted from their target
allocation, groups accounts by sector preference, and recommends buy/sell
actions from peer holdings.

Storage is always supplied by the caller through a PortfolioStore.
"""

__version__ = "0.1.0"
__author__ = "Firm Core Team"
