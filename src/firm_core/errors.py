"""
Exception hierarchy for the firm core.

Public operations translate most of these into failure sentinels (False, -1,
or an empty collection) at their boundary; the exceptions exist so that a
failing step can abort the surrounding store transaction.
"""

from decimal import Decimal
from typing import Optional


class FirmError(Exception):
    """Base class for all firm core errors."""
    pass


class ValidationError(FirmError):
    """Raised for missing input, unknown entities or out-of-range arguments."""
    pass


class InsufficientResourceError(FirmError):
    """
    Raised when an account lacks the cash or shares a trade needs.

    Attributes:
        account_id: Account the trade was attempted on
        required: Amount the trade needed
        available: Amount the account actually had
    """

    def __init__(
        self,
        message: str,
        account_id: Optional[int] = None,
        required: Optional[Decimal] = None,
        available: Optional[Decimal] = None,
    ):
        super().__init__(message)
        self.account_id = account_id
        self.required = required
        self.available = available


class InsufficientFundsError(InsufficientResourceError):
    """Raised when a buy costs more than the account's cash balance."""
    pass


class InsufficientSharesError(InsufficientResourceError):
    """Raised when a sell asks for more shares than the account holds."""
    pass
