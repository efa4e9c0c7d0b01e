"""
Loading transaction data into engine records.

Reads CSV exports (or DataFrames) in either the engine's snake_case
schema or the storage layer's camelCase schema and converts them to
``Transaction`` objects, plus the reverse conversion for reporting.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd
from loguru import logger

from risk_engine.transaction import Transaction, sort_by_time

REQUIRED_COLUMNS = ["id", "account_id", "amount", "merchant", "category", "timestamp"]


def load_transactions(path: str | Path) -> list[Transaction]:
    """Load a transaction CSV.

    Amounts are read as strings so they convert to ``Decimal`` exactly.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If a row lacks a required field.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Transaction file not found: {path}")

    df = pd.read_csv(path, dtype={"amount": str})
    transactions = transactions_from_frame(df)
    flagged = sum(1 for t in transactions if t.is_flagged)
    logger.info(
        f"Loaded {len(transactions):,} transactions from {path} "
        f"({flagged:,} flagged)"
    )
    return transactions


def transactions_from_frame(df: pd.DataFrame) -> list[Transaction]:
    """Convert DataFrame rows to ``Transaction`` objects."""
    return [Transaction.from_record(record) for record in df.to_dict(orient="records")]


def transactions_to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Convert transactions to a DataFrame (one row each)."""
    records = [t.to_dict() for t in transactions]
    if not records:
        return pd.DataFrame(columns=REQUIRED_COLUMNS)
    return pd.DataFrame(records)


def split_chronologically(
    transactions: Sequence[Transaction], bootstrap_fraction: float = 0.7
) -> tuple[list[Transaction], list[Transaction]]:
    """Split into an earlier bootstrap set and a later replay set.

    Args:
        transactions: All transactions.
        bootstrap_fraction: Share of transactions (by time) used for
            the bootstrap set.

    Returns:
        ``(bootstrap, replay)`` both in timestamp order.
    """
    if not 0 < bootstrap_fraction <= 1:
        raise ValueError("bootstrap_fraction must be in (0, 1]")
    ordered = sort_by_time(transactions)
    split_idx = int(len(ordered) * bootstrap_fraction)
    return ordered[:split_idx], ordered[split_idx:]
