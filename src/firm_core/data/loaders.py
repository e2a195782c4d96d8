"""
Snapshot loading and saving functions for CSV files.

A snapshot directory holds the firm's reference data (sectors, instruments,
profiles) and its mutable state (accounts, holdings, fractional carry).
Loading builds an InMemoryStore; saving writes the mutable state back.
"""

import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path

import pandas as pd

from firm_core.errors import FirmError
from firm_core.store.base import PortfolioStore
from firm_core.store.memory import InMemoryStore
from firm_core.data.schemas import (
    ACCOUNTS_SCHEMA,
    FRACTIONAL_CARRY_SCHEMA,
    HOLDINGS_SCHEMA,
    INSTRUMENTS_SCHEMA,
    PROFILES_SCHEMA,
    SECTORS_SCHEMA,
    FileSchema,
)

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"true", "1", "yes", "y"}


class DataLoadError(Exception):
    """Raised when snapshot data cannot be loaded or is invalid."""
    pass


def load_snapshot(directory: str | Path) -> InMemoryStore:
    """
    Load a firm snapshot from a directory of CSV files.

    Expects sectors.csv, instruments.csv, profiles.csv, accounts.csv and
    holdings.csv; fractional_carry.csv is optional. Clients and advisors
    are registered from the ids referenced by accounts.

    Args:
        directory: Snapshot directory

    Returns:
        InMemoryStore populated with the snapshot

    Raises:
        DataLoadError: If a file is missing, malformed or inconsistent
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise DataLoadError(f"Snapshot directory not found: {directory}")

    store = InMemoryStore()

    try:
        sectors_df = _load_csv(directory / SECTORS_SCHEMA.file_name, SECTORS_SCHEMA)
        for sector in sectors_df["sector"]:
            if sector.strip():
                store.add_sector(sector.strip())

        instruments_df = _load_csv(
            directory / INSTRUMENTS_SCHEMA.file_name, INSTRUMENTS_SCHEMA
        )
        for _, row in instruments_df.iterrows():
            store.add_instrument(
                symbol=row["symbol"],
                sector=row["sector"].strip(),
                price=_parse_decimal(row["price"], "price"),
                company_name=row.get("company_name", "") or "",
            )

        profiles_df = _load_csv(directory / PROFILES_SCHEMA.file_name, PROFILES_SCHEMA)
        for profile_name, group in profiles_df.groupby("profile_name", sort=True):
            weights = {
                row["sector"].strip(): _parse_int(row["percentage"], "percentage")
                for _, row in group.iterrows()
            }
            store.add_profile(profile_name, weights)

        accounts_df = _load_csv(directory / ACCOUNTS_SCHEMA.file_name, ACCOUNTS_SCHEMA)
        for _, row in accounts_df.iterrows():
            client_id = _parse_int(row["client_id"], "client_id")
            advisor_id = _parse_int(row["advisor_id"], "advisor_id")
            if not store.client_exists(client_id):
                store.add_client(client_id)
            if not store.advisor_exists(advisor_id):
                store.add_advisor(advisor_id)
            store.add_account(
                client_id=client_id,
                advisor_id=advisor_id,
                profile_name=row["profile_name"],
                reinvest=row["reinvest"].strip().lower() in _TRUE_VALUES,
                cash_balance=_parse_decimal(row["cash_balance"], "cash_balance"),
                name=row.get("name", "") or "",
                account_id=_parse_int(row["account_id"], "account_id"),
            )

        holdings_df = _load_csv(directory / HOLDINGS_SCHEMA.file_name, HOLDINGS_SCHEMA)
        for _, row in holdings_df.iterrows():
            store.set_holding(
                account_id=_parse_int(row["account_id"], "account_id"),
                symbol=row["symbol"],
                shares=_parse_decimal(row["shares"], "shares"),
                acb=_parse_decimal(row["acb"], "acb"),
            )

        carry_path = directory / FRACTIONAL_CARRY_SCHEMA.file_name
        if carry_path.exists():
            carry_df = _load_csv(carry_path, FRACTIONAL_CARRY_SCHEMA)
            for _, row in carry_df.iterrows():
                store.set_fractional_carry(
                    row["symbol"], _parse_decimal(row["shares"], "shares")
                )
    except FirmError as e:
        raise DataLoadError(f"Inconsistent snapshot in {directory}: {e}") from e

    logger.info(
        f"Loaded snapshot from {directory}: {len(store.list_accounts())} accounts, "
        f"{len(store.list_holdings())} holdings"
    )
    return store


def save_snapshot(store: PortfolioStore, directory: str | Path) -> Path:
    """
    Save the mutable firm state to a snapshot directory.

    Writes accounts.csv, holdings.csv and fractional_carry.csv. Reference
    data files already present in the directory are left untouched.

    Args:
        store: Store to read state from
        directory: Output directory (created if needed)

    Returns:
        Path to the snapshot directory
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    account_records = []
    for account in store.list_accounts():
        account_records.append({
            "account_id": account.account_id,
            "client_id": account.client_id,
            "advisor_id": account.advisor_id,
            "profile_name": account.profile_name,
            "reinvest": account.reinvest,
            "cash_balance": str(account.cash_balance),
            "name": account.name,
        })
    _save_csv(account_records, directory / ACCOUNTS_SCHEMA.file_name, ACCOUNTS_SCHEMA)

    holding_records = []
    for holding in store.list_holdings():
        holding_records.append({
            "account_id": holding.account_id,
            "symbol": holding.symbol,
            "shares": str(holding.shares),
            "acb": str(holding.acb),
        })
    _save_csv(holding_records, directory / HOLDINGS_SCHEMA.file_name, HOLDINGS_SCHEMA)

    carry_records = []
    for instrument in store.list_instruments():
        carry = store.get_fractional_carry(instrument.symbol)
        if carry != 0:
            carry_records.append({"symbol": instrument.symbol, "shares": str(carry)})
    _save_csv(
        carry_records,
        directory / FRACTIONAL_CARRY_SCHEMA.file_name,
        FRACTIONAL_CARRY_SCHEMA,
    )

    logger.info(f"Saved snapshot to {directory}")
    return directory


def _load_csv(file_path: Path, schema: FileSchema) -> pd.DataFrame:
    """
    Load a CSV file as text columns and validate against schema.

    Args:
        file_path: Path to CSV file
        schema: Expected file schema

    Returns:
        Loaded DataFrame (all values as str, blanks as "")

    Raises:
        DataLoadError: If file cannot be loaded or has missing columns
    """
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    try:
        df = pd.read_csv(file_path, dtype=str, keep_default_na=False)
    except Exception as e:
        raise DataLoadError(f"Failed to load CSV file {file_path}: {e}")

    # Validate columns
    is_valid, missing = schema.validate_columns(df.columns.tolist())
    if not is_valid:
        raise DataLoadError(
            f"File {file_path} is missing required columns: {missing}"
        )

    return df


def _save_csv(records: list[dict], output_path: Path, schema: FileSchema) -> None:
    df = pd.DataFrame(records, columns=schema.all_columns)
    df.to_csv(output_path, index=False)


def _parse_decimal(value: str, field_name: str) -> Decimal:
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise DataLoadError(f"Invalid {field_name} value: {value!r}") from e


def _parse_int(value: str, field_name: str) -> int:
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise DataLoadError(f"Invalid {field_name} value: {value!r}") from e
