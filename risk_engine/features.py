"""
Feature extraction for transaction risk scoring.

Turns a candidate transaction plus its account's history into a
fixed-schema feature vector.  Two schemas exist: the base schema used
by the anomaly detector and the extended schema (multi-window
velocity, recency and amount-pattern features) used by the per-holder
classifier.

History is always filtered to transactions strictly earlier than the
candidate, so future transactions can never leak into a feature.
"""

from __future__ import annotations

from bisect import bisect_left
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd
from loguru import logger

from risk_engine.config import DEFAULT_CONFIG, EngineConfig
from risk_engine.errors import FeatureSchemaMismatchError
from risk_engine.transaction import Transaction, sort_by_time

# Ordered mapping: feature name -> value.  Key order is the schema.
FeatureVector = dict[str, float]


class FeatureExtractor:
    """Builds base and extended feature vectors.

    The schema is determined entirely by the config (window sizes), so
    two extractors built from equal configs always agree on key order.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        """
        Args:
            config: Engine configuration.  Uses the defaults when omitted.
        """
        self._config = config or DEFAULT_CONFIG
        self._base_names = self._build_base_names()
        self._extended_names = self._build_extended_names()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feature_names(self, extended: bool = False) -> tuple[str, ...]:
        """Return the fixed feature schema."""
        return self._extended_names if extended else self._base_names

    def extract(
        self,
        transaction: Transaction,
        historical_transactions: Iterable[Transaction],
    ) -> FeatureVector:
        """Compute the base feature vector.

        Args:
            transaction: The candidate transaction.
            historical_transactions: The account's other transactions.
                Anything not strictly earlier than ``transaction`` is
                ignored.

        Returns:
            Ordered ``{feature_name: value}`` mapping, all values finite.
        """
        history = causal_history(transaction, historical_transactions)
        return self._base_features(transaction, history)

    def extract_extended(
        self,
        transaction: Transaction,
        historical_transactions: Iterable[Transaction],
    ) -> FeatureVector:
        """Compute the extended feature vector (base schema first)."""
        history = causal_history(transaction, historical_transactions)
        features = self._base_features(transaction, history)
        features.update(self._extended_features(transaction, history))
        return features

    def extract_frame(
        self,
        transactions: Sequence[Transaction],
        extended: bool = False,
    ) -> pd.DataFrame:
        """Extract one row per transaction against its own earlier subset.

        Args:
            transactions: Transactions to featurize; they also serve as
                each other's history.
            extended: Use the extended schema.

        Returns:
            DataFrame indexed by transaction id, in timestamp order, with
            columns in schema order.
        """
        ordered = sort_by_time(transactions)
        times = [t.timestamp for t in ordered]
        rows: list[list[float]] = []
        for txn in ordered:
            earlier = ordered[: bisect_left(times, txn.timestamp)]
            if extended:
                vector = self.extract_extended(txn, earlier)
            else:
                vector = self.extract(txn, earlier)
            rows.append(list(vector.values()))

        names = self.feature_names(extended)
        logger.debug(
            f"Extracted {len(names)} features for {len(ordered)} transactions"
        )
        return pd.DataFrame(
            rows,
            columns=list(names),
            index=pd.Index([t.id for t in ordered], name="transaction_id"),
            dtype=np.float64,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _build_base_names(self) -> tuple[str, ...]:
        window = self._config.velocity_window_hours
        return (
            "hour",
            "dayOfWeek",
            "isWeekend",
            "amount",
            "amountVsMerchantAvg",
            "amountVsCategoryAvg",
            f"transactionVelocity{window}h",
            f"totalAmount{window}h",
            "merchantFrequency",
            "categoryFrequency",
        )

    def _build_extended_names(self) -> tuple[str, ...]:
        names = list(self._base_names)
        for hours in self._config.extended_windows:
            names += [
                f"transactions_{hours}h",
                f"amount_{hours}h",
                f"unique_merchants_{hours}h",
                f"unique_categories_{hours}h",
            ]
        names += [
            "minute",
            "dayOfMonth",
            "month",
            "hoursSinceMerchant",
            "hoursSinceCategory",
            "merchantTransactionCount",
            "categoryTransactionCount",
            "amountZScore",
            "isRoundAmount",
            "hasPreviousFlag",
        ]
        return tuple(names)

    def _base_features(
        self, transaction: Transaction, history: list[Transaction]
    ) -> FeatureVector:
        ts = transaction.timestamp
        amount = transaction.absolute_amount
        day_of_week = (ts.weekday() + 1) % 7  # Sunday = 0

        merchant_history = [t for t in history if t.merchant == transaction.merchant]
        category_history = [t for t in history if t.category == transaction.category]

        window = self._config.velocity_window_hours
        recent = _within_window(ts, history, window)

        n_history = len(history)
        return {
            "hour": float(ts.hour),
            "dayOfWeek": float(day_of_week),
            "isWeekend": float(day_of_week in (0, 6)),
            "amount": float(amount),
            "amountVsMerchantAvg": _ratio_to_mean(amount, merchant_history),
            "amountVsCategoryAvg": _ratio_to_mean(amount, category_history),
            f"transactionVelocity{window}h": float(len(recent)),
            f"totalAmount{window}h": float(_total(recent)),
            "merchantFrequency": (
                len(merchant_history) / n_history if n_history else 0.0
            ),
            "categoryFrequency": (
                len(category_history) / n_history if n_history else 0.0
            ),
        }

    def _extended_features(
        self, transaction: Transaction, history: list[Transaction]
    ) -> FeatureVector:
        cfg = self._config
        ts = transaction.timestamp
        amount = transaction.absolute_amount
        features: FeatureVector = {}

        for hours in cfg.extended_windows:
            window_txns = _within_window(ts, history, hours)
            features[f"transactions_{hours}h"] = float(len(window_txns))
            features[f"amount_{hours}h"] = float(_total(window_txns))
            features[f"unique_merchants_{hours}h"] = float(
                len({t.merchant for t in window_txns})
            )
            features[f"unique_categories_{hours}h"] = float(
                len({t.category for t in window_txns})
            )

        merchant_history = [t for t in history if t.merchant == transaction.merchant]
        category_history = [t for t in history if t.category == transaction.category]

        features["minute"] = float(ts.minute)
        features["dayOfMonth"] = float(ts.day)
        features["month"] = float(ts.month)
        features["hoursSinceMerchant"] = self._hours_since(ts, merchant_history)
        features["hoursSinceCategory"] = self._hours_since(ts, category_history)
        features["merchantTransactionCount"] = float(len(merchant_history))
        features["categoryTransactionCount"] = float(len(category_history))
        features["amountZScore"] = _recent_zscore(amount, history, cfg.zscore_window)
        features["isRoundAmount"] = float(
            any(amount % divisor == 0 for divisor in cfg.round_divisors)
        )
        features["hasPreviousFlag"] = float(any(t.is_flagged for t in history))
        return features

    def _hours_since(self, ts: datetime, matches: list[Transaction]) -> float:
        # Absent history maps to a finite sentinel, never to infinity.
        if not matches:
            return self._config.absent_hours_sentinel
        last = max(t.timestamp for t in matches)
        return (ts - last).total_seconds() / 3600.0


def causal_history(
    transaction: Transaction, historical_transactions: Iterable[Transaction]
) -> list[Transaction]:
    """Keep only history strictly earlier than ``transaction``, time-ordered."""
    return sort_by_time(
        t
        for t in historical_transactions
        if t.timestamp < transaction.timestamp and t.id != transaction.id
    )


def vector_to_array(
    vector: FeatureVector, expected_names: Sequence[str]
) -> np.ndarray:
    """Convert a feature vector to a 1 x n matrix, checking the schema.

    Raises:
        FeatureSchemaMismatchError: If names or order differ from
            ``expected_names``.
    """
    if tuple(vector.keys()) != tuple(expected_names):
        raise FeatureSchemaMismatchError(expected_names, tuple(vector.keys()))
    return np.asarray([list(vector.values())], dtype=np.float64)


def _within_window(
    ts: datetime, history: list[Transaction], hours: int
) -> list[Transaction]:
    horizon = timedelta(hours=hours)
    return [t for t in history if ts - t.timestamp <= horizon]


def _total(transactions: list[Transaction]) -> Decimal:
    return sum((t.absolute_amount for t in transactions), Decimal(0))


def _ratio_to_mean(amount: Decimal, matches: list[Transaction]) -> float:
    """Amount relative to the historical mean of ``matches``.

    With no matching history the denominator falls back to the amount
    itself, so the ratio is exactly 1.0.
    """
    mean = _total(matches) / len(matches) if matches else Decimal(0)
    denominator = mean or amount
    if not denominator:
        return 1.0
    return float(amount / denominator)


def _recent_zscore(
    amount: Decimal, history: list[Transaction], window: int
) -> float:
    recent = np.array(
        [float(t.absolute_amount) for t in history[-window:]], dtype=np.float64
    )
    if recent.size == 0:
        return 0.0
    std = float(recent.std())
    if std == 0.0:
        return 0.0
    return (float(amount) - float(recent.mean())) / std
