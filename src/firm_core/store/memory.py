"""
In-memory portfolio store.

Keeps all firm data in dictionaries. Transactions snapshot the mutable state
on entry and restore it if the unit of work raises, giving the same
all-or-nothing behavior as a database-backed store.
"""

import copy
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, Optional

from firm_core.errors import ValidationError
from firm_core.models import CASH_SECTOR, Account, Holding, Instrument, Profile
from firm_core.store.base import PortfolioStore, StorageError


class InMemoryStore(PortfolioStore):
    """Dictionary-backed PortfolioStore used for snapshots and tests."""

    def __init__(self):
        self._sectors: list[str] = [CASH_SECTOR]
        self._instruments: dict[str, Instrument] = {}
        self._profiles: dict[str, Profile] = {}
        self._clients: set[int] = set()
        self._advisors: set[int] = set()
        self._accounts: dict[int, Account] = {}
        self._holdings: dict[tuple[int, str], Holding] = {}
        self._fractional_carry: dict[str, Decimal] = {}
        self._depth = 0

    @property
    def name(self) -> str:
        return "InMemory"

    # -- setup helpers (entity lifecycle lives outside the core) --------------

    def add_sector(self, sector_name: str) -> None:
        """Define a sector. The cash pseudo-sector always exists."""
        if not sector_name:
            raise ValidationError("Sector name cannot be empty")
        if sector_name not in self._sectors:
            self._sectors.append(sector_name)

    def add_instrument(
        self,
        symbol: str,
        sector: str,
        price: Decimal = Decimal("1"),
        company_name: str = "",
    ) -> Instrument:
        """Define a stock in a known sector."""
        if not symbol or not sector:
            raise ValidationError("Symbol and sector are required")
        if sector not in self._sectors:
            raise ValidationError(f"Unknown sector: {sector}")
        instrument = Instrument(
            symbol=_normalize(symbol),
            sector=sector,
            price=Decimal(str(price)),
            company_name=company_name,
        )
        self._instruments[instrument.symbol] = instrument
        return instrument

    def set_price(self, symbol: str, price: Decimal) -> None:
        """Update an instrument's current price."""
        price = Decimal(str(price))
        if price < 0:
            raise ValidationError(f"Price cannot be negative: {price}")
        instrument = self._instruments.get(_normalize(symbol))
        if instrument is None:
            raise ValidationError(f"Unknown instrument: {symbol}")
        instrument.price = price

    def add_profile(self, name: str, target_weights: dict[str, int]) -> Profile:
        """Define a target allocation profile; percentages must total 100."""
        if not name or not target_weights:
            raise ValidationError("Profile name and weights are required")
        profile = Profile.create(name, target_weights)
        if profile.total_percentage != 100:
            raise ValidationError(
                f"Profile {name} weights sum to {profile.total_percentage}, expected 100"
            )
        unknown = [s for s in profile.target_weights if s not in self._sectors]
        if unknown:
            raise ValidationError(f"Profile {name} references unknown sectors: {unknown}")
        self._profiles[name] = profile
        return profile

    def add_client(self, client_id: Optional[int] = None) -> int:
        """Register a client and return its id."""
        if client_id is None:
            client_id = max(self._clients, default=0) + 1
        self._clients.add(client_id)
        return client_id

    def add_advisor(self, advisor_id: Optional[int] = None) -> int:
        """Register an advisor and return its id."""
        if advisor_id is None:
            advisor_id = max(self._advisors, default=0) + 1
        self._advisors.add(advisor_id)
        return advisor_id

    def add_account(
        self,
        client_id: int,
        advisor_id: int,
        profile_name: str,
        reinvest: bool = False,
        cash_balance: Decimal = Decimal("0"),
        name: str = "",
        account_id: Optional[int] = None,
    ) -> int:
        """Open an account for an existing client and advisor."""
        if client_id not in self._clients:
            raise ValidationError(f"Unknown client: {client_id}")
        if advisor_id not in self._advisors:
            raise ValidationError(f"Unknown advisor: {advisor_id}")
        if not profile_name:
            raise ValidationError("Profile name is required")
        if account_id is None:
            account_id = max(self._accounts, default=0) + 1
        self._accounts[account_id] = Account(
            account_id=account_id,
            client_id=client_id,
            advisor_id=advisor_id,
            profile_name=profile_name,
            reinvest=reinvest,
            cash_balance=Decimal(str(cash_balance)),
            name=name,
        )
        return account_id

    # -- PortfolioStore -------------------------------------------------------

    def client_exists(self, client_id: int) -> bool:
        return client_id in self._clients

    def advisor_exists(self, advisor_id: int) -> bool:
        return advisor_id in self._advisors

    def account_exists(self, account_id: int) -> bool:
        return account_id in self._accounts

    def instrument_exists(self, symbol: str) -> bool:
        return symbol is not None and _normalize(symbol) in self._instruments

    def get_account(self, account_id: int) -> Optional[Account]:
        account = self._accounts.get(account_id)
        return copy.copy(account) if account is not None else None

    def list_accounts(self) -> list[Account]:
        return [copy.copy(self._accounts[a]) for a in sorted(self._accounts)]

    def accounts_for_advisor(self, advisor_id: int) -> list[Account]:
        return [a for a in self.list_accounts() if a.advisor_id == advisor_id]

    def accounts_for_client(self, client_id: int) -> list[Account]:
        return [a for a in self.list_accounts() if a.client_id == client_id]

    def get_holding(self, account_id: int, symbol: str) -> Optional[Holding]:
        holding = self._holdings.get((account_id, _normalize(symbol)))
        return copy.copy(holding) if holding is not None else None

    def set_holding(
        self,
        account_id: int,
        symbol: str,
        shares: Decimal,
        acb: Decimal,
    ) -> None:
        if account_id not in self._accounts:
            raise StorageError(f"Unknown account: {account_id}")
        symbol = _normalize(symbol)
        if symbol not in self._instruments:
            raise StorageError(f"Unknown instrument: {symbol}")
        self._holdings[(account_id, symbol)] = Holding(
            account_id=account_id,
            symbol=symbol,
            shares=shares,
            acb=acb,
        )

    def holdings_for_account(self, account_id: int) -> list[Holding]:
        return [h for h in self.list_holdings() if h.account_id == account_id]

    def list_holdings(self) -> list[Holding]:
        return [copy.copy(self._holdings[key]) for key in sorted(self._holdings)]

    def holders_of(self, symbol: str) -> list[Holding]:
        symbol = _normalize(symbol)
        return [h for h in self.list_holdings() if h.symbol == symbol]

    def get_cash(self, account_id: int) -> Decimal:
        account = self._accounts.get(account_id)
        if account is None:
            raise StorageError(f"Unknown account: {account_id}")
        return account.cash_balance

    def adjust_cash(self, account_id: int, amount: Decimal) -> None:
        account = self._accounts.get(account_id)
        if account is None:
            raise StorageError(f"Unknown account: {account_id}")
        account.cash_balance += amount

    def get_instrument(self, symbol: str) -> Optional[Instrument]:
        if symbol is None:
            return None
        instrument = self._instruments.get(_normalize(symbol))
        return copy.copy(instrument) if instrument is not None else None

    def list_instruments(self) -> list[Instrument]:
        return [copy.copy(self._instruments[s]) for s in sorted(self._instruments)]

    def profile_weights(self, profile_name: str) -> dict[str, int]:
        profile = self._profiles.get(profile_name)
        return dict(profile.target_weights) if profile is not None else {}

    def sector_names(self) -> list[str]:
        return list(self._sectors)

    def get_fractional_carry(self, symbol: str) -> Decimal:
        return self._fractional_carry.get(_normalize(symbol), Decimal("0"))

    def set_fractional_carry(self, symbol: str, shares: Decimal) -> None:
        self._fractional_carry[_normalize(symbol)] = shares

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        if self._depth > 0:
            # Join the outer unit of work
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        snapshot = (
            copy.deepcopy(self._accounts),
            copy.deepcopy(self._holdings),
            dict(self._fractional_carry),
        )
        self._depth = 1
        try:
            yield self
        except Exception:
            self._accounts, self._holdings, self._fractional_carry = snapshot
            raise
        finally:
            self._depth = 0


def _normalize(symbol: str) -> str:
    return symbol.upper().strip()
