"""
Per-holder behavioral profiling.

A profile summarizes what "normal" looks like for one account holder:
the hours, merchants and categories seen before, the average amount
and the transaction rate.  Profiles are rebuilt from the full list on
every update, so an update is idempotent for a given input.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Hashable, Optional, Sequence

from loguru import logger

from risk_engine.config import DEFAULT_CONFIG, EngineConfig
from risk_engine.scoring import MAX_SCORE
from risk_engine.transaction import Transaction, sort_by_time


@dataclass(frozen=True)
class BehavioralProfile:
    """Summary statistics of one holder's transaction history."""

    typical_hours: frozenset[int]
    typical_merchants: frozenset[str]
    typical_categories: frozenset[str]
    average_amount: Decimal
    transaction_frequency: float  # transactions per day
    transaction_count: int

    @classmethod
    def from_transactions(
        cls, transactions: Sequence[Transaction]
    ) -> "BehavioralProfile":
        """Build a profile from a non-empty transaction list."""
        if not transactions:
            raise ValueError("Cannot build a profile from zero transactions")

        ordered = sort_by_time(transactions)
        total = sum((t.absolute_amount for t in ordered), Decimal(0))
        span_days = (
            ordered[-1].timestamp - ordered[0].timestamp
        ).total_seconds() / 86400.0

        return cls(
            typical_hours=frozenset(t.timestamp.hour for t in ordered),
            typical_merchants=frozenset(t.merchant for t in ordered),
            typical_categories=frozenset(t.category for t in ordered),
            average_amount=total / len(ordered),
            transaction_frequency=len(ordered) / (span_days or 1.0),
            transaction_count=len(ordered),
        )


class BehavioralProfiler:
    """Holds one ``BehavioralProfile`` per account holder.

    No model is trained; scoring is a sum of fixed penalties for each
    way the transaction departs from the holder's profile.
    """

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self._config = config or DEFAULT_CONFIG
        self._profiles: dict[Hashable, BehavioralProfile] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def update_profile(
        self, holder_id: Hashable, transactions: Sequence[Transaction]
    ) -> Optional[BehavioralProfile]:
        """Recompute the holder's profile from ``transactions``.

        Replaces any existing profile.  An empty list removes the
        profile, returning the holder to the cold-start state.

        Returns:
            The new profile, or ``None`` if ``transactions`` was empty.
        """
        if not transactions:
            logger.warning(
                f"Empty transaction list for holder {holder_id}; dropping profile"
            )
            self.remove_profile(holder_id)
            return None

        profile = BehavioralProfile.from_transactions(transactions)
        with self._lock:
            self._profiles[holder_id] = profile
        logger.debug(
            f"Profile for holder {holder_id} rebuilt from "
            f"{profile.transaction_count} transactions"
        )
        return profile

    def analyze_transaction(
        self, holder_id: Hashable, transaction: Transaction
    ) -> int:
        """Score deviation from the holder's profile in ``[0, 100]``.

        Returns 0 when the holder has no profile yet.
        """
        profile = self.get_profile(holder_id)
        if profile is None:
            return 0
        total = sum(points for _, points in self._penalties(profile, transaction))
        return min(total, MAX_SCORE)

    def explain(
        self, holder_id: Hashable, transaction: Transaction
    ) -> list[str]:
        """Human-readable reasons behind ``analyze_transaction``."""
        profile = self.get_profile(holder_id)
        if profile is None:
            return []
        return [reason for reason, _ in self._penalties(profile, transaction)]

    def get_profile(self, holder_id: Hashable) -> Optional[BehavioralProfile]:
        """Current profile for the holder, or ``None``."""
        with self._lock:
            return self._profiles.get(holder_id)

    def remove_profile(self, holder_id: Hashable) -> None:
        with self._lock:
            self._profiles.pop(holder_id, None)

    def __contains__(self, holder_id: Hashable) -> bool:
        with self._lock:
            return holder_id in self._profiles

    def __len__(self) -> int:
        with self._lock:
            return len(self._profiles)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _penalties(
        self, profile: BehavioralProfile, transaction: Transaction
    ) -> list[tuple[str, int]]:
        cfg = self._config
        penalties: list[tuple[str, int]] = []

        if transaction.timestamp.hour not in profile.typical_hours:
            penalties.append(
                (f"Unusual hour ({transaction.timestamp.hour:02d}:00)",
                 cfg.unfamiliar_hour_penalty)
            )
        if transaction.merchant not in profile.typical_merchants:
            penalties.append(
                (f"New merchant: {transaction.merchant}",
                 cfg.unfamiliar_merchant_penalty)
            )
        if transaction.category not in profile.typical_categories:
            penalties.append(
                (f"New category: {transaction.category}",
                 cfg.unfamiliar_category_penalty)
            )

        # Strictly greater: exactly the multiple is not unusual.
        limit = profile.average_amount * Decimal(str(cfg.amount_multiplier))
        if transaction.absolute_amount > limit:
            penalties.append(
                (f"Amount above {cfg.amount_multiplier:g}x holder average "
                 f"({profile.average_amount:.2f})",
                 cfg.unusual_amount_penalty)
            )
        return penalties
