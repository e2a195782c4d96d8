"""
Decision logging module for the firm core.

Provides append-only decision logging for audit and operational logging setup.
"""

from firm_core.logging.decision_log import (
    DecisionLogger,
    DecimalEncoder,
    configure_logging,
)

__all__ = [
    "DecisionLogger",
    "DecimalEncoder",
    "configure_logging",
]
