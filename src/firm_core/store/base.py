"""
Abstract base class for portfolio stores.

Defines the persistence interface the firm core consumes. Services never open
connections themselves; a store instance is injected into each of them.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Optional

from firm_core.errors import FirmError
from firm_core.models import Account, Holding, Instrument


class StorageError(FirmError):
    """Raised when the underlying persistence layer fails."""
    pass


class PortfolioStore(ABC):
    """
    Abstract base class for firm data storage.

    Implementations must provide:
    - Existence predicates for clients, advisors, accounts and instruments
    - Holding, cash, price, profile and sector lookups
    - Holding and cash mutation
    - Firm-level fractional share carry per symbol
    - An all-or-nothing transaction boundary
    """

    # -- existence predicates -------------------------------------------------

    @abstractmethod
    def client_exists(self, client_id: int) -> bool:
        """Return True if the client is known."""
        pass

    @abstractmethod
    def advisor_exists(self, advisor_id: int) -> bool:
        """Return True if the advisor is known."""
        pass

    @abstractmethod
    def account_exists(self, account_id: int) -> bool:
        """Return True if the account is known."""
        pass

    @abstractmethod
    def instrument_exists(self, symbol: str) -> bool:
        """Return True if the instrument is known."""
        pass

    # -- accounts -------------------------------------------------------------

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get an account, or None if it does not exist."""
        pass

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """Get all accounts ordered by account id."""
        pass

    @abstractmethod
    def accounts_for_advisor(self, advisor_id: int) -> list[Account]:
        """Get all accounts assigned to an advisor."""
        pass

    @abstractmethod
    def accounts_for_client(self, client_id: int) -> list[Account]:
        """Get all accounts owned by a client."""
        pass

    # -- holdings -------------------------------------------------------------

    @abstractmethod
    def get_holding(self, account_id: int, symbol: str) -> Optional[Holding]:
        """Get the holding for an account and symbol, or None if never held."""
        pass

    @abstractmethod
    def set_holding(
        self,
        account_id: int,
        symbol: str,
        shares: Decimal,
        acb: Decimal,
    ) -> None:
        """Create or replace the holding for an account and symbol."""
        pass

    @abstractmethod
    def holdings_for_account(self, account_id: int) -> list[Holding]:
        """Get every holding record of an account."""
        pass

    @abstractmethod
    def list_holdings(self) -> list[Holding]:
        """Get every holding record in the firm."""
        pass

    @abstractmethod
    def holders_of(self, symbol: str) -> list[Holding]:
        """Get every holding record for a symbol."""
        pass

    # -- cash -----------------------------------------------------------------

    @abstractmethod
    def get_cash(self, account_id: int) -> Decimal:
        """
        Get an account's cash balance.

        Raises:
            StorageError: If the account does not exist
        """
        pass

    @abstractmethod
    def adjust_cash(self, account_id: int, amount: Decimal) -> None:
        """
        Add a (possibly negative) amount to an account's cash balance.

        Raises:
            StorageError: If the account does not exist
        """
        pass

    # -- instruments, profiles, sectors ---------------------------------------

    @abstractmethod
    def get_instrument(self, symbol: str) -> Optional[Instrument]:
        """Get an instrument, or None if it does not exist."""
        pass

    @abstractmethod
    def list_instruments(self) -> list[Instrument]:
        """Get all instruments ordered by symbol."""
        pass

    @abstractmethod
    def profile_weights(self, profile_name: str) -> dict[str, int]:
        """Get target sector percentages for a profile (empty if unknown)."""
        pass

    @abstractmethod
    def sector_names(self) -> list[str]:
        """Get the names of all known sectors."""
        pass

    # -- firm fractional carry -------------------------------------------------

    @abstractmethod
    def get_fractional_carry(self, symbol: str) -> Decimal:
        """Get the firm's carried fractional shares for a symbol (0 if none)."""
        pass

    @abstractmethod
    def set_fractional_carry(self, symbol: str, shares: Decimal) -> None:
        """Replace the firm's carried fractional shares for a symbol."""
        pass

    # -- transactions ---------------------------------------------------------

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """
        Open an all-or-nothing unit of work.

        Usage:
            with store.transaction():
                store.set_holding(...)
                store.adjust_cash(...)
                # Commits on success, rolls back on exception

        Nested use joins the outermost transaction.
        """
        pass

    def get_price(self, symbol: str) -> Decimal:
        """
        Get the current price of an instrument.

        Raises:
            StorageError: If the instrument does not exist
        """
        instrument = self.get_instrument(symbol)
        if instrument is None:
            raise StorageError(f"Unknown instrument: {symbol}")
        return instrument.price

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this store."""
        pass
