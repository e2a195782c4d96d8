"""
Builders for the per-account vectors used by clustering and recommendations.

Holdings are flattened into a DataFrame and pivoted so every account vector
shares the same key set.
"""

import pandas as pd

from firm_core.store.base import PortfolioStore


def holdings_frame(store: PortfolioStore) -> pd.DataFrame:
    """
    Flatten every holding record with its instrument's sector and price.

    Args:
        store: Store to read from

    Returns:
        DataFrame with columns account_id, symbol, sector, shares, price, value
    """
    instruments = {i.symbol: i for i in store.list_instruments()}

    records = []
    for holding in store.list_holdings():
        instrument = instruments.get(holding.symbol)
        if instrument is None:
            continue
        records.append({
            "account_id": holding.account_id,
            "symbol": holding.symbol,
            "sector": instrument.sector,
            "shares": float(holding.shares),
            "price": float(instrument.price),
            "value": float(holding.shares * instrument.price),
        })

    return pd.DataFrame(
        records,
        columns=["account_id", "symbol", "sector", "shares", "price", "value"],
    )


def stock_vectors(store: PortfolioStore) -> dict[int, dict[str, float]]:
    """
    Build share-count vectors for every account that has holding records.

    Each vector covers every known instrument, with 0 for stocks the account
    does not hold.

    Args:
        store: Store to read from

    Returns:
        Dictionary mapping account_id -> {symbol: shares}
    """
    all_symbols = [i.symbol for i in store.list_instruments()]
    df = holdings_frame(store)
    if df.empty:
        return {}

    pivot = df.pivot_table(
        index="account_id",
        columns="symbol",
        values="shares",
        aggfunc="sum",
        fill_value=0.0,
    ).reindex(columns=all_symbols, fill_value=0.0)

    return {
        int(account_id): {s: float(v) for s, v in row.items()}
        for account_id, row in pivot.iterrows()
    }


def zero_stock_vector(store: PortfolioStore) -> dict[str, float]:
    """Get a share-count vector with 0 for every known instrument."""
    return {i.symbol: 0.0 for i in store.list_instruments()}


def sector_value_vectors(store: PortfolioStore) -> dict[int, dict[str, float]]:
    """
    Build market-value-per-sector vectors for accounts with holdings.

    Cash balances are not part of these vectors.

    Args:
        store: Store to read from

    Returns:
        Dictionary mapping account_id -> {sector: market value}
    """
    df = holdings_frame(store)
    if df.empty:
        return {}

    pivot = df.pivot_table(
        index="account_id",
        columns="sector",
        values="value",
        aggfunc="sum",
        fill_value=0.0,
    )

    return {
        int(account_id): {sector: float(v) for sector, v in row.items()}
        for account_id, row in pivot.iterrows()
    }
