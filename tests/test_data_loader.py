"""Tests for the data loader and the synthetic generator."""

from decimal import Decimal

import pandas as pd
import pytest

from risk_engine.data_loader import (
    REQUIRED_COLUMNS,
    load_transactions,
    split_chronologically,
    transactions_from_frame,
    transactions_to_frame,
)
from risk_engine.synthetic import FRAUD_MERCHANTS, MERCHANTS, generate_transactions


# ── Synthetic generation ───────────────────────────────────────────


def test_generate_has_required_columns():
    df = generate_transactions(n_holders=3, transactions_per_holder=10)
    assert set(REQUIRED_COLUMNS).issubset(df.columns)
    assert {"is_spending", "is_flagged"}.issubset(df.columns)


def test_generate_row_count():
    df = generate_transactions(n_holders=4, transactions_per_holder=25)
    assert len(df) == 100
    assert df["id"].is_unique


def test_generate_fraud_rate():
    df = generate_transactions(n_holders=50, transactions_per_holder=60, fraud_rate=0.03)
    assert 0.015 < df["is_flagged"].mean() < 0.05


def test_generate_sorted_by_time():
    df = generate_transactions(n_holders=5, transactions_per_holder=20)
    ts = pd.to_datetime(df["timestamp"])
    assert ts.is_monotonic_increasing


def test_generate_amounts_are_negative_spending():
    df = generate_transactions(n_holders=5, transactions_per_holder=20)
    assert all(Decimal(a) < 0 for a in df["amount"])


def test_generate_known_merchants():
    df = generate_transactions(n_holders=5, transactions_per_holder=40, fraud_rate=0.2)
    known = {m for ms in MERCHANTS.values() for m in ms}
    known |= {m for ms in FRAUD_MERCHANTS.values() for m in ms}
    assert set(df["merchant"]).issubset(known)


def test_generate_reproducible():
    df1 = generate_transactions(n_holders=3, transactions_per_holder=10, seed=7)
    df2 = generate_transactions(n_holders=3, transactions_per_holder=10, seed=7)
    pd.testing.assert_frame_equal(df1, df2)


# ── Loading ────────────────────────────────────────────────────────


def test_load_round_trip_through_csv(tmp_path):
    df = generate_transactions(n_holders=3, transactions_per_holder=10)
    path = tmp_path / "transactions.csv"
    df.to_csv(path, index=False)

    transactions = load_transactions(path)
    assert len(transactions) == 30
    first = transactions[0]
    assert isinstance(first.amount, Decimal)
    assert first.amount == Decimal(df.loc[0, "amount"])
    assert sum(t.is_flagged for t in transactions) == int(df["is_flagged"].sum())


def test_load_missing_file():
    with pytest.raises(FileNotFoundError):
        load_transactions("/nonexistent/transactions.csv")


def test_from_frame_accepts_camel_case_columns():
    df = pd.DataFrame(
        {
            "id": [1, 2],
            "accountId": [10, 10],
            "amount": ["-5.00", "-7.25"],
            "merchant": ["CareRx", "CareRx"],
            "category": ["Pharmacy", "Pharmacy"],
            "transactionDate": ["2024-01-02 10:00", "2024-01-03 11:00"],
            "isFlagged": [False, True],
        }
    )
    transactions = transactions_from_frame(df)
    assert [t.account_id for t in transactions] == [10, 10]
    assert transactions[1].is_flagged is True


def test_from_frame_missing_column():
    df = pd.DataFrame({"id": [1], "amount": ["1.00"]})
    with pytest.raises(ValueError, match="missing fields"):
        transactions_from_frame(df)


def test_to_frame():
    df = generate_transactions(n_holders=2, transactions_per_holder=5)
    frame = transactions_to_frame(transactions_from_frame(df))
    assert len(frame) == 10
    assert set(REQUIRED_COLUMNS).issubset(frame.columns)


def test_to_frame_empty():
    frame = transactions_to_frame([])
    assert frame.empty
    assert list(frame.columns) == REQUIRED_COLUMNS


# ── Chronological split ────────────────────────────────────────────


def test_split_is_chronological():
    transactions = transactions_from_frame(
        generate_transactions(n_holders=4, transactions_per_holder=25)
    )
    bootstrap, replay = split_chronologically(transactions, 0.7)
    assert len(bootstrap) == 70
    assert len(replay) == 30
    assert max(t.timestamp for t in bootstrap) <= min(t.timestamp for t in replay)


def test_split_rejects_bad_fraction():
    with pytest.raises(ValueError, match="bootstrap_fraction"):
        split_chronologically([], 0)
